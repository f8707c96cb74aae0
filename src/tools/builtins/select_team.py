from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.auth.resolver import ContextResolver
    from src.tools.context import ExecutionContext


class SelectTeamParams(ToolParams):
    team_id: str = Field(..., min_length=1, description="Team to use for later calls.")
    channel_id: str | None = Field(None, min_length=1, description="Optional channel within the team.")


class SelectTeamTool(BaseTool):
    """Sets the team/channel hints carried into later calls."""

    def __init__(self, resolver: ContextResolver) -> None:
        self._resolver = resolver

    @property
    def name(self) -> str:
        return "teams-select-team"

    @property
    def description(self) -> str:
        return "Select the team (and optionally channel) that later tool calls operate on."

    @property
    def params_model(self) -> type[SelectTeamParams]:
        return SelectTeamParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.team_management

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.guest

    async def execute(self, arguments: SelectTeamParams, context: ExecutionContext) -> ToolOutput:
        self._resolver.update_hints(team_id=arguments.team_id, channel_id=arguments.channel_id)
        text = f"Selected team {arguments.team_id}"
        if arguments.channel_id:
            text += f", channel {arguments.channel_id}"
        return ToolOutput(
            text=text + ".",
            data={"currentTeamId": arguments.team_id, "currentChannelId": arguments.channel_id},
        )
