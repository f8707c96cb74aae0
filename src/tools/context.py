from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field

from src.directory.client import UserIdentity
from src.tools.base import PermissionLevel


def new_correlation_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ExecutionContext:
    """Per-call context injected into tool execution by the invocation pipeline.

    Built by ContextResolver for exactly one in-flight call and discarded after.
    identity is empty (UserIdentity()) when no session could be established.
    authentication_error is set when a session was required but not obtained.
    """

    identity: UserIdentity = field(default_factory=UserIdentity)
    tenant_id: str | None = None
    current_team_id: str | None = None
    current_channel_id: str | None = None
    permission_level: PermissionLevel = PermissionLevel.guest
    correlation_id: str = field(default_factory=new_correlation_id)
    authentication_error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return not self.identity.is_empty

    def with_team(
        self, team_id: str, permission_level: PermissionLevel
    ) -> ExecutionContext:
        """Copy with a new team; the channel hint is cleared."""
        return dataclasses.replace(
            self,
            current_team_id=team_id,
            current_channel_id=None,
            permission_level=permission_level,
        )

    def with_channel(self, channel_id: str) -> ExecutionContext:
        return dataclasses.replace(self, current_channel_id=channel_id)
