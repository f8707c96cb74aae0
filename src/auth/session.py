"""Session manager: the one piece of mutable shared auth state.

State machine::

    unauthenticated -> detecting -> using_external_credential -> authenticated
                                 \\-> device_code_pending ----/
    authenticated -> expired (on access past expiry - margin) -> detecting

Refreshes are single-flight: the first caller starts one refresh task and
every concurrent caller awaits that same task, so they all get its session
or its error. The task is cleared once it finishes; cancelling the last
waiter cancels the refresh.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from src.auth.detector import CredentialDetector
from src.auth.device_code import InteractiveFlow
from src.auth.exchange import CredentialExchange
from src.auth.models import CredentialSourceType, DetectionResult, Session, SessionState
from src.infra.errors import TeamsGateError

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    def __init__(
        self,
        *,
        detector: CredentialDetector,
        exchanges: Sequence[CredentialExchange],
        interactive: InteractiveFlow,
        scopes: Sequence[str],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._detector = detector
        self._exchanges: dict[CredentialSourceType, CredentialExchange] = {
            e.source_type: e for e in exchanges
        }
        self._interactive = interactive
        self._scopes = tuple(scopes)
        self._clock = clock
        self._refresh_task: asyncio.Task[Session] | None = None
        self._waiters = 0
        self._session: Session | None = None
        self._state = SessionState.unauthenticated
        self._last_detection: DetectionResult | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_detection(self) -> DetectionResult | None:
        return self._last_detection

    def current_session(self) -> Session | None:
        """Cached session if still valid. Never starts a refresh."""
        session = self._session
        if session is None:
            return None
        if session.is_valid(self._clock()):
            return session
        if self._state is SessionState.authenticated:
            self._state = SessionState.expired
            logger.info("session_expired", source=session.source.value)
        return None

    def is_authenticated(self) -> bool:
        return self.current_session() is not None

    async def get_session(self) -> Session:
        """Valid session, refreshing if needed. Raises AuthenticationError."""
        session = self.current_session()
        if session is not None:
            return session

        task = self._refresh_task
        if task is None:
            self._session = None
            task = asyncio.create_task(self._run_refresh())
            self._refresh_task = task

        self._waiters += 1
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._waiters == 1 and not task.done():
                task.cancel()
                await asyncio.wait([task])
            raise
        finally:
            self._waiters -= 1

    async def _run_refresh(self) -> Session:
        try:
            session = await self._refresh()
        except BaseException:
            self._state = SessionState.unauthenticated
            self._refresh_task = None
            raise

        self._session = session
        self._state = SessionState.authenticated
        self._refresh_task = None
        logger.info(
            "session_established",
            source=session.source.value,
            expires_at=session.expires_at.isoformat(),
        )
        return session

    async def get_access_token(self) -> str:
        return (await self.get_session()).access_token

    def clear_session(self) -> None:
        """Drop the cached session. The next access starts from detection."""
        self._session = None
        self._state = SessionState.unauthenticated
        logger.info("session_cleared")

    async def _refresh(self) -> Session:
        self._state = SessionState.detecting
        detection = await self._detector.detect()
        self._last_detection = detection

        for source in detection.available():
            exchange = self._exchanges.get(source.type)
            if exchange is None:
                logger.info("credential_exchange_unsupported", source=source.type.value)
                continue

            self._state = SessionState.using_external_credential
            try:
                session = await exchange.exchange(source, scopes=self._scopes)
            except TeamsGateError as e:
                logger.warning(
                    "credential_exchange_failed",
                    source=source.type.value,
                    error_code=e.code,
                    error=str(e),
                )
                continue

            if session is not None and session.is_valid(self._clock()):
                return session
            logger.info("credential_exchange_no_session", source=source.type.value)

        self._state = SessionState.device_code_pending
        logger.info("device_code_fallback")
        return await self._interactive.run(self._scopes)
