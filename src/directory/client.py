"""Directory/collaboration service seen by the gateway core and tool bodies.

The core only needs identity and role lookups; tool bodies use the rest.
Implementations raise DirectoryError carrying the upstream status so the
invocation pipeline can map forbidden/not-found/other failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.tools.base import PermissionLevel


@dataclass(frozen=True)
class UserIdentity:
    """Resolved caller identity. All fields empty means unauthenticated."""

    display_name: str = ""
    user_principal_name: str = ""
    user_id: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.display_name or self.user_principal_name or self.user_id)


@dataclass(frozen=True)
class TeamInfo:
    team_id: str
    display_name: str
    description: str = ""
    member_count: int | None = None
    channel_count: int | None = None


@dataclass(frozen=True)
class ChannelInfo:
    channel_id: str
    display_name: str
    membership_type: str = "standard"
    description: str = ""


@dataclass(frozen=True)
class MemberInfo:
    user_id: str
    display_name: str
    email: str
    role: str
    is_guest: bool = False


class DirectoryClient(ABC):
    """Upstream directory API. Implementations own how they authenticate."""

    @abstractmethod
    async def get_current_user(self) -> UserIdentity:
        ...

    @abstractmethod
    async def get_permission_level(self, team_id: str) -> PermissionLevel:
        """Caller's role in the team. Raises DirectoryError(404) for unknown teams."""
        ...

    @abstractmethod
    async def get_team(self, team_id: str) -> TeamInfo:
        ...

    @abstractmethod
    async def list_channels(
        self, team_id: str, *, include_private: bool = False
    ) -> list[ChannelInfo]:
        ...

    @abstractmethod
    async def list_members(
        self, team_id: str, *, include_guests: bool = False
    ) -> list[MemberInfo]:
        ...

    @abstractmethod
    async def add_member(
        self, team_id: str, email: str, *, role: str = "member"
    ) -> MemberInfo:
        ...

    @abstractmethod
    async def cancel_meeting(
        self, meeting_id: str, *, comment: str = ""
    ) -> dict[str, Any]:
        ...

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
