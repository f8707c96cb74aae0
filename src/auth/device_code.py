"""OAuth 2.0 device authorization grant against the Microsoft identity platform.

Flow: request a device code, show the user where to enter it, then poll the
token endpoint until the user completes sign-in, declines, or the code
expires. Every wait is an ``await`` so the whole flow is cancellable.
"""

from __future__ import annotations

import asyncio
import inspect
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog

from src.auth.models import CredentialSourceType, DeviceCodeChallenge, Session
from src.infra.errors import AuthenticationError

logger = structlog.get_logger()

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"

PromptCallback = Callable[[DeviceCodeChallenge], Awaitable[None] | None]


def stderr_prompt(challenge: DeviceCodeChallenge) -> None:
    """Default prompt: structured log line plus the provider's message on stderr."""
    logger.info(
        "device_code_prompt",
        verification_uri=challenge.verification_uri,
        user_code=challenge.user_code,
        expires_in=challenge.expires_in,
    )
    print(challenge.message, file=sys.stderr, flush=True)


class InteractiveFlow(ABC):
    """Last-resort sign-in used when no existing credential can be exchanged."""

    @abstractmethod
    async def run(self, scopes: Sequence[str]) -> Session:
        """Return a new Session or raise AuthenticationError."""
        ...


class DeviceCodeFlow(InteractiveFlow):
    def __init__(
        self,
        *,
        authority_host: str,
        tenant_id: str,
        client_id: str,
        timeout_seconds: float = 900.0,
        http_timeout: float = 30.0,
        prompt: PromptCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base = f"{authority_host.rstrip('/')}/{tenant_id}/oauth2/v2.0"
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._timeout_seconds = timeout_seconds
        self._http_timeout = http_timeout
        self._prompt = prompt or stderr_prompt
        self._transport = transport
        self._sleep = sleep
        self._clock = clock

    async def run(self, scopes: Sequence[str]) -> Session:
        async with httpx.AsyncClient(
            timeout=self._http_timeout, transport=self._transport
        ) as client:
            try:
                payload = await self._request_device_code(client, scopes)
                challenge = DeviceCodeChallenge(
                    verification_uri=payload["verification_uri"],
                    user_code=payload["user_code"],
                    message=payload.get("message")
                    or f"Go to {payload['verification_uri']} and enter the code {payload['user_code']}",
                    expires_in=int(payload.get("expires_in", self._timeout_seconds)),
                    interval=int(payload.get("interval", 5)),
                )
                device_code = payload["device_code"]
            except (KeyError, ValueError) as e:
                raise AuthenticationError(
                    f"Device code response missing required fields: {e}",
                    code="DEVICE_CODE_FAILED",
                ) from e

            result = self._prompt(challenge)
            if inspect.isawaitable(result):
                await result

            token = await self._poll(client, device_code, challenge)

        expires_in = int(token.get("expires_in", 3600))
        granted = token.get("scope")
        logger.info("device_code_completed", expires_in=expires_in)
        return Session(
            access_token=token["access_token"],
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            tenant_id=self._tenant_id,
            scopes=tuple(granted.split()) if granted else tuple(scopes),
            source=CredentialSourceType.device_code,
        )

    async def _request_device_code(
        self, client: httpx.AsyncClient, scopes: Sequence[str]
    ) -> dict[str, Any]:
        try:
            response = await client.post(
                f"{self._base}/devicecode",
                data={"client_id": self._client_id, "scope": " ".join(scopes)},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(
                f"Could not reach the identity provider: {e}", code="DEVICE_CODE_FAILED"
            ) from e
        if response.status_code != 200:
            raise AuthenticationError(
                f"Device code request failed ({response.status_code}): {_error_description(response)}",
                code="DEVICE_CODE_FAILED",
            )
        return response.json()

    async def _poll(
        self,
        client: httpx.AsyncClient,
        device_code: str,
        challenge: DeviceCodeChallenge,
    ) -> dict[str, Any]:
        deadline = self._clock() + min(challenge.expires_in, self._timeout_seconds)
        interval = max(1, challenge.interval)
        attempt = 0

        while True:
            await self._sleep(interval)
            if self._clock() >= deadline:
                break
            attempt += 1
            try:
                response = await client.post(
                    f"{self._base}/token",
                    data={
                        "grant_type": DEVICE_CODE_GRANT,
                        "client_id": self._client_id,
                        "device_code": device_code,
                    },
                )
            except httpx.HTTPError as e:
                raise AuthenticationError(
                    f"Could not reach the identity provider: {e}", code="DEVICE_CODE_FAILED"
                ) from e

            if response.status_code == 200:
                return response.json()

            try:
                error = str(response.json().get("error", "")).lower()
            except ValueError:
                error = ""
            logger.debug("device_code_poll", attempt=attempt, error=error)

            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue
            if error == "authorization_declined":
                raise AuthenticationError(
                    "Sign-in was declined by the user", code="DEVICE_CODE_DECLINED"
                )
            if error == "expired_token":
                raise AuthenticationError(
                    "Device code expired before sign-in completed", code="DEVICE_CODE_TIMEOUT"
                )
            raise AuthenticationError(
                f"Device code token exchange failed ({response.status_code}): "
                f"{_error_description(response)}",
                code="DEVICE_CODE_FAILED",
            )

        raise AuthenticationError(
            "Device code sign-in did not complete in time", code="DEVICE_CODE_TIMEOUT"
        )


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    return payload.get("error_description") or payload.get("error") or ""


class SimulatedDeviceCodeFlow(InteractiveFlow):
    """Completes immediately with a synthetic token. Simulation mode only."""

    def __init__(self, *, tenant_id: str = "common", lifetime: timedelta = timedelta(hours=1)) -> None:
        self._tenant_id = tenant_id
        self._lifetime = lifetime
        self.runs = 0

    async def run(self, scopes: Sequence[str]) -> Session:
        self.runs += 1
        logger.info("simulated_device_code_completed")
        return Session(
            access_token=f"simulated-token-{self.runs}",
            expires_at=datetime.now(UTC) + self._lifetime,
            tenant_id=self._tenant_id,
            scopes=tuple(scopes),
            source=CredentialSourceType.device_code,
        )
