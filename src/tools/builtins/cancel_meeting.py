from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.directory.client import DirectoryClient
    from src.tools.context import ExecutionContext


class CancelMeetingParams(ToolParams):
    meeting_id: str = Field(..., min_length=1, description="Calendar event id of the meeting.")
    comment: str = Field("", max_length=1000, description="Message sent to attendees.")


class CancelMeetingTool(BaseTool):
    """Cancels a meeting. Only the organizer may do this."""

    def __init__(self, directory: DirectoryClient) -> None:
        self._directory = directory

    @property
    def name(self) -> str:
        return "teams-cancel-meeting"

    @property
    def description(self) -> str:
        return "Cancel a Teams meeting you organize and notify its attendees."

    @property
    def params_model(self) -> type[CancelMeetingParams]:
        return CancelMeetingParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.meetings

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.organizer

    async def execute(self, arguments: CancelMeetingParams, context: ExecutionContext) -> ToolOutput:
        result = await self._directory.cancel_meeting(
            arguments.meeting_id, comment=arguments.comment
        )
        return ToolOutput(text=f"Meeting {arguments.meeting_id} cancelled.", data=result)
