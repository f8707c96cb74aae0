"""Team membership tools: list (Member) and add (Owner)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import Field

from src.infra.errors import DirectoryError
from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.directory.client import DirectoryClient, MemberInfo
    from src.tools.context import ExecutionContext

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _member_dict(m: MemberInfo) -> dict:
    return {
        "id": m.user_id,
        "displayName": m.display_name,
        "email": m.email,
        "role": m.role,
        "isGuest": m.is_guest,
    }


class ListMembersParams(ToolParams):
    include_guests: bool = Field(False, description="Include guest members.")


class AddMemberParams(ToolParams):
    email: str = Field(..., pattern=_EMAIL_PATTERN, description="Email of the user to add.")
    role: Literal["member", "owner"] = Field("member", description="Role in the team.")


class ListMembersTool(BaseTool):
    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "teams-list-members"

    @property
    def description(self) -> str:
        return "List the members of the currently selected team."

    @property
    def params_model(self) -> type[ListMembersParams]:
        return ListMembersParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.user_management

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.member

    async def execute(self, arguments: ListMembersParams, context: ExecutionContext) -> ToolOutput:
        team_id = context.current_team_id or ""
        members = await self._directory.list_members(
            team_id, include_guests=arguments.include_guests
        )
        lines = [f"{len(members)} member(s) in team {team_id}:"]
        lines.extend(f"  {m.display_name} <{m.email}> - {m.role}" for m in members)
        return ToolOutput(text="\n".join(lines), data=[_member_dict(m) for m in members])


class AddMemberTool(BaseTool):
    """Adds a user to the selected team. Owner only."""

    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "teams-add-member"

    @property
    def description(self) -> str:
        return "Add a user to the currently selected team as a member or owner."

    @property
    def params_model(self) -> type[AddMemberParams]:
        return AddMemberParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.user_management

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.owner

    async def execute(self, arguments: AddMemberParams, context: ExecutionContext) -> ToolOutput:
        team_id = context.current_team_id or ""
        try:
            member = await self._directory.add_member(
                team_id, arguments.email, role=arguments.role
            )
        except DirectoryError as e:
            if e.status != 409:
                raise
            return ToolOutput(
                text=f"{arguments.email} is already a member of team {team_id}.",
                data={"added": False, "email": arguments.email},
            )
        return ToolOutput(
            text=f"Added {member.email} to team {team_id} as {member.role}.",
            data={"added": True, "member": _member_dict(member)},
        )
