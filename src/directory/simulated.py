"""In-memory directory used in simulation mode and tests.

grant_level replaces the blanket "every permission check passes" shortcut:
the role reported for every team is whatever the operator configured.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.directory.client import (
    ChannelInfo,
    DirectoryClient,
    MemberInfo,
    TeamInfo,
    UserIdentity,
)
from src.infra.errors import DirectoryError
from src.tools.base import PermissionLevel

logger = structlog.get_logger()

_SIMULATED_USER = UserIdentity(
    display_name="Mock User",
    user_principal_name="mock@example.com",
    user_id="mock-user-id",
)

_DEFAULT_CHANNELS = (
    ChannelInfo("channel-general", "General", "standard", "Default team channel"),
    ChannelInfo("channel-dev", "Development", "standard", "Development discussions"),
    ChannelInfo("channel-alpha", "Project Alpha", "private", "Private project channel"),
)

_DEFAULT_MEMBERS = (
    MemberInfo("user-1", "John Doe", "john@contoso.com", "owner"),
    MemberInfo("user-2", "Jane Smith", "jane@contoso.com", "member"),
    MemberInfo("user-3", "Bob Wilson", "bob@contoso.com", "member"),
    MemberInfo("user-4", "Alice Guest", "alice@external.com", "guest", is_guest=True),
)


class SimulatedDirectoryClient(DirectoryClient):
    """Deterministic directory with a configurable caller role."""

    def __init__(
        self,
        grant_level: PermissionLevel = PermissionLevel.member,
        *,
        user: UserIdentity = _SIMULATED_USER,
        meeting_ids: tuple[str, ...] = ("meeting-1", "meeting-2"),
    ) -> None:
        self._grant_level = grant_level
        self._user = user
        self._members: dict[str, list[MemberInfo]] = {}
        self._meetings = set(meeting_ids)

    @property
    def grant_level(self) -> PermissionLevel:
        return self._grant_level

    async def get_current_user(self) -> UserIdentity:
        return self._user

    async def get_permission_level(self, team_id: str) -> PermissionLevel:
        logger.debug(
            "simulated_permission_lookup", team_id=team_id, level=self._grant_level.value,
        )
        return self._grant_level

    async def get_team(self, team_id: str) -> TeamInfo:
        members = self._members_for(team_id)
        return TeamInfo(
            team_id=team_id,
            display_name=f"Team {team_id}",
            description="Simulated team",
            member_count=len(members),
            channel_count=len(_DEFAULT_CHANNELS),
        )

    async def list_channels(
        self, team_id: str, *, include_private: bool = False
    ) -> list[ChannelInfo]:
        return [
            c for c in _DEFAULT_CHANNELS
            if include_private or c.membership_type != "private"
        ]

    async def list_members(
        self, team_id: str, *, include_guests: bool = False
    ) -> list[MemberInfo]:
        return [m for m in self._members_for(team_id) if include_guests or not m.is_guest]

    async def add_member(
        self, team_id: str, email: str, *, role: str = "member"
    ) -> MemberInfo:
        members = self._members_for(team_id)
        if any(m.email.lower() == email.lower() for m in members):
            raise DirectoryError(f"{email} is already a member of team {team_id}", status=409)
        member = MemberInfo(
            user_id=f"user-{len(members) + 1}",
            display_name=email.split("@", 1)[0],
            email=email,
            role=role,
        )
        members.append(member)
        return member

    async def cancel_meeting(
        self, meeting_id: str, *, comment: str = ""
    ) -> dict[str, Any]:
        if meeting_id not in self._meetings:
            raise DirectoryError(f"Meeting {meeting_id} does not exist", status=404)
        self._meetings.discard(meeting_id)
        return {"meetingId": meeting_id, "cancelled": True, "comment": comment}

    def _members_for(self, team_id: str) -> list[MemberInfo]:
        if team_id not in self._members:
            self._members[team_id] = list(_DEFAULT_MEMBERS)
        return self._members[team_id]
