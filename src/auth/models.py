"""Auth-side value types shared by detector, exchange, device-code flow and session manager.

All types are immutable. A Session is replaced wholesale on refresh, never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from src.constants import SESSION_SAFETY_MARGIN


class CredentialSourceType(StrEnum):
    azure_cli = "azure_cli"
    vscode = "vscode"
    credential_vault = "credential_vault"
    # Only used as Session.source; never probed.
    device_code = "device_code"


# Probe order. Earlier wins regardless of which probe finished first.
SOURCE_PRIORITY: tuple[CredentialSourceType, ...] = (
    CredentialSourceType.azure_cli,
    CredentialSourceType.vscode,
    CredentialSourceType.credential_vault,
)


class SessionState(StrEnum):
    unauthenticated = "unauthenticated"
    detecting = "detecting"
    using_external_credential = "using_external_credential"
    device_code_pending = "device_code_pending"
    authenticated = "authenticated"
    expired = "expired"


@dataclass(frozen=True)
class CredentialSource:
    """Result of one probe. Recomputed on every detection pass."""

    type: CredentialSourceType
    available: bool = False
    tenant_id: str | None = None
    user_principal_name: str | None = None
    display_name: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "available": self.available,
            "tenantId": self.tenant_id,
            "userPrincipalName": self.user_principal_name,
            "displayName": self.display_name,
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class DetectionResult:
    """Per-probe results held in priority order."""

    sources: tuple[CredentialSource, ...] = ()

    def preferred(self) -> CredentialSource | None:
        """First available source in priority order, or None."""
        for source in self.sources:
            if source.available:
                return source
        return None

    def available(self) -> list[CredentialSource]:
        return [s for s in self.sources if s.available]

    def get(self, source_type: CredentialSourceType) -> CredentialSource | None:
        for source in self.sources:
            if source.type is source_type:
                return source
        return None

    @property
    def has_any(self) -> bool:
        return self.preferred() is not None


@dataclass(frozen=True)
class Session:
    """An access token plus what produced it."""

    access_token: str
    expires_at: datetime
    tenant_id: str | None = None
    scopes: tuple[str, ...] = ()
    source: CredentialSourceType = CredentialSourceType.device_code

    def is_valid(
        self, now: datetime | None = None, *, margin: timedelta = SESSION_SAFETY_MARGIN
    ) -> bool:
        """True iff now < expires_at - margin."""
        now = now or datetime.now(UTC)
        return now < self.expires_at - margin


@dataclass(frozen=True)
class DeviceCodeChallenge:
    """What the user must be shown to complete a device-code sign-in."""

    verification_uri: str
    user_code: str
    message: str
    expires_in: int
    interval: int
