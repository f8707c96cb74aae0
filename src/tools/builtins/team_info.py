"""teams-get-info: who the gateway thinks you are and which team is selected."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.directory.client import DirectoryClient
    from src.tools.context import ExecutionContext


class TeamInfoParams(ToolParams):
    team_id: str | None = Field(None, description="Team to describe. Defaults to the selected team.")


class TeamInfoTool(BaseTool):
    """Reports the resolved context, plus team details once signed in.

    Guest-level, so it must work without a session: the directory is only
    consulted when the context is already authenticated.
    """

    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "teams-get-info"

    @property
    def description(self) -> str:
        return "Show the signed-in user, tenant, selected team/channel and your permission level."

    @property
    def params_model(self) -> type[TeamInfoParams]:
        return TeamInfoParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.support

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.guest

    async def execute(self, arguments: TeamInfoParams, context: ExecutionContext) -> ToolOutput:
        team_id = arguments.team_id or context.current_team_id
        data: dict = {
            "authenticated": context.is_authenticated,
            "user": {
                "displayName": context.identity.display_name,
                "userPrincipalName": context.identity.user_principal_name,
                "id": context.identity.user_id,
            } if context.is_authenticated else None,
            "tenantId": context.tenant_id,
            "currentTeamId": context.current_team_id,
            "currentChannelId": context.current_channel_id,
            "permissionLevel": context.permission_level.value,
            "team": None,
        }

        if not context.is_authenticated:
            lines = ["Not signed in. Guest-level tools are available."]
        else:
            lines = [f"Signed in as {context.identity.display_name or context.identity.user_principal_name}"]
        if context.tenant_id:
            lines.append(f"Tenant: {context.tenant_id}")

        if team_id and context.is_authenticated:
            team = await self._directory.get_team(team_id)
            data["team"] = {
                "id": team.team_id,
                "displayName": team.display_name,
                "description": team.description,
                "memberCount": team.member_count,
                "channelCount": team.channel_count,
            }
            lines.append(f"Team: {team.display_name} ({team.team_id})")
        elif team_id:
            lines.append(f"Team: {team_id}")
        else:
            lines.append("No team selected.")

        if context.current_channel_id:
            lines.append(f"Channel: {context.current_channel_id}")
        lines.append(f"Permission level: {context.permission_level.value}")
        return ToolOutput(text="\n".join(lines), data=data)
