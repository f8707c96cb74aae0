from __future__ import annotations

import dataclasses

import structlog

from src.auth.session import SessionManager
from src.directory.client import DirectoryClient
from src.infra.errors import AuthenticationError, DirectoryError
from src.tools.base import PermissionLevel
from src.tools.context import ExecutionContext, new_correlation_id

logger = structlog.get_logger()


class ContextResolver:
    """Builds the ExecutionContext for one tool call.

    Never returns None and never raises for authentication failures: a call
    that could not obtain a session gets an unauthenticated Guest context
    with authentication_error set, and the pipeline decides what that means.

    Team/channel hints start from configuration and are carried across calls.
    """

    def __init__(
        self,
        sessions: SessionManager,
        directory: DirectoryClient,
        *,
        tenant_id: str | None = None,
        current_team_id: str | None = None,
        current_channel_id: str | None = None,
    ) -> None:
        self._sessions = sessions
        self._directory = directory
        self._tenant_id = tenant_id
        self._team_id = current_team_id
        self._channel_id = current_channel_id

    @property
    def current_team_id(self) -> str | None:
        return self._team_id

    @property
    def current_channel_id(self) -> str | None:
        return self._channel_id

    def update_hints(
        self, *, team_id: str | None = None, channel_id: str | None = None
    ) -> None:
        """Set the team (clearing the channel unless one is given) and/or the channel.

        Raises ValueError when a channel is set without any team.
        """
        if team_id is not None:
            self._team_id = team_id
            self._channel_id = channel_id
        elif channel_id is not None:
            if self._team_id is None:
                raise ValueError("A channel hint requires a team hint")
            self._channel_id = channel_id
        logger.info("context_hints_updated", team_id=self._team_id, channel_id=self._channel_id)

    async def resolve(
        self, *, correlation_id: str | None = None, require_session: bool = True
    ) -> ExecutionContext:
        """Resolve identity, tenant and permission level.

        With require_session False only an already cached session is used, so
        Guest-level calls never trigger detection or an interactive sign-in.
        """
        base = ExecutionContext(
            tenant_id=self._tenant_id,
            current_team_id=self._team_id,
            current_channel_id=self._channel_id,
            correlation_id=correlation_id or new_correlation_id(),
        )

        if require_session:
            try:
                session = await self._sessions.get_session()
            except AuthenticationError as e:
                logger.warning("context_unauthenticated", error_code=e.code, error=str(e))
                return dataclasses.replace(base, authentication_error=str(e))
        else:
            session = self._sessions.current_session()
            if session is None:
                return base

        try:
            identity = await self._directory.get_current_user()
        except (DirectoryError, AuthenticationError) as e:
            logger.warning("identity_lookup_failed", error=str(e))
            return dataclasses.replace(
                base,
                tenant_id=session.tenant_id or self._tenant_id,
                authentication_error=f"Could not resolve the signed-in user: {e}"
                if require_session else None,
            )

        level = PermissionLevel.guest
        if self._team_id:
            try:
                level = await self._directory.get_permission_level(self._team_id)
            except (DirectoryError, AuthenticationError) as e:
                logger.warning(
                    "permission_lookup_failed", team_id=self._team_id, error=str(e)
                )

        return dataclasses.replace(
            base,
            identity=identity,
            tenant_id=session.tenant_id or self._tenant_id,
            permission_level=level,
        )

