"""Turning a detected credential source into a Session.

Only the Azure CLI can mint a token on our behalf. The VS Code extension and
the platform vault are detected but have no exchange registered; the session
manager falls through to the next source for them.
"""

from __future__ import annotations

import json
import shutil
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import UTC, datetime

import structlog

from src.auth.detector import run_command
from src.auth.models import CredentialSource, CredentialSourceType, Session

logger = structlog.get_logger()


class CredentialExchange(ABC):
    """Obtains a Session from one kind of credential source."""

    source_type: CredentialSourceType

    @abstractmethod
    async def exchange(
        self, source: CredentialSource, *, scopes: Sequence[str]
    ) -> Session | None:
        """Return a Session, or None when this source cannot produce one right now."""
        ...


def parse_cli_expiry(payload: dict) -> datetime:
    """Expiry from ``az account get-access-token`` output as an aware UTC datetime.

    Newer CLI versions emit ``expires_on`` (POSIX seconds); older ones only
    ``expiresOn`` as a naive local timestamp.
    """
    epoch = payload.get("expires_on")
    if epoch is not None:
        return datetime.fromtimestamp(int(epoch), tz=UTC)
    raw = payload.get("expiresOn")
    if not raw:
        raise ValueError("token response carries no expiry")
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.astimezone(UTC)


class AzureCliExchange(CredentialExchange):
    source_type = CredentialSourceType.azure_cli

    def __init__(
        self, executable: str = "az", *, resource: str, timeout: float = 15.0
    ) -> None:
        self._executable = executable
        self._resource = resource
        self._timeout = timeout

    async def exchange(
        self, source: CredentialSource, *, scopes: Sequence[str]
    ) -> Session | None:
        path = shutil.which(self._executable)
        if path is None:
            logger.warning("cli_exchange_unavailable", reason="not_installed")
            return None

        code, stdout, stderr = await run_command(
            [path, "account", "get-access-token", "--resource", self._resource, "--output", "json"],
            timeout=self._timeout,
        )
        if code != 0:
            logger.warning("cli_exchange_failed", returncode=code, stderr=stderr.strip()[:500])
            return None

        try:
            payload = json.loads(stdout)
            token = payload["accessToken"]
            expires_at = parse_cli_expiry(payload)
        except (ValueError, KeyError) as e:
            logger.warning("cli_exchange_unparsable", error=str(e))
            return None

        return Session(
            access_token=token,
            expires_at=expires_at,
            tenant_id=payload.get("tenant") or source.tenant_id,
            scopes=tuple(scopes),
            source=CredentialSourceType.azure_cli,
        )
