from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.directory.client import DirectoryClient
    from src.tools.context import ExecutionContext


class ListChannelsParams(ToolParams):
    include_private: bool = Field(False, description="Include private channels.")


class ListChannelsTool(BaseTool):
    """Lists channels of the selected team."""

    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "teams-list-channels"

    @property
    def description(self) -> str:
        return "List the channels of the currently selected team."

    @property
    def params_model(self) -> type[ListChannelsParams]:
        return ListChannelsParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.channel_management

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.member

    async def execute(self, arguments: ListChannelsParams, context: ExecutionContext) -> ToolOutput:
        # Authorization guarantees a team is selected.
        team_id = context.current_team_id or ""
        channels = await self._directory.list_channels(
            team_id, include_private=arguments.include_private
        )
        lines = [f"{len(channels)} channel(s) in team {team_id}:"]
        lines.extend(f"  {c.display_name} ({c.membership_type})" for c in channels)
        return ToolOutput(
            text="\n".join(lines),
            data=[
                {
                    "id": c.channel_id,
                    "displayName": c.display_name,
                    "membershipType": c.membership_type,
                    "description": c.description,
                }
                for c in channels
            ],
        )
