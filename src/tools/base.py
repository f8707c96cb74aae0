from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from src.tools.context import ExecutionContext


class ToolCategory(StrEnum):
    user_management = "UserManagement"
    channel_management = "ChannelManagement"
    messaging = "Messaging"
    files = "Files"
    meetings = "Meetings"
    tasks = "Tasks"
    integrations = "Integrations"
    presence = "Presence"
    support = "Support"
    reporting = "Reporting"
    team_management = "TeamManagement"
    notifications = "Notifications"
    polls = "Polls"


class PermissionLevel(StrEnum):
    """Caller privilege tier within the current team.

    Total order Guest < Member < Owner. Organizer is a sibling tier that only
    meeting-scoped tools may require; an Organizer caller ranks as Member for
    everything else.
    """

    guest = "Guest"
    member = "Member"
    owner = "Owner"
    organizer = "Organizer"


_RANK: dict[PermissionLevel, int] = {
    PermissionLevel.guest: 0,
    PermissionLevel.member: 1,
    PermissionLevel.owner: 2,
    PermissionLevel.organizer: 1,
}


def satisfies(actual: PermissionLevel, required: PermissionLevel) -> bool:
    """Whether a caller at `actual` may run a tool that requires `required`."""
    if required is PermissionLevel.guest:
        return True
    if required is PermissionLevel.organizer:
        return actual is PermissionLevel.organizer
    return _RANK[actual] >= _RANK[required]


class ToolParams(BaseModel):
    """Base for tool parameter models.

    Wire names are camelCase; unknown fields are rejected so the generated
    schema carries additionalProperties: false.
    """

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class NoParams(ToolParams):
    """Parameter model for tools that take no arguments."""


@dataclass(frozen=True)
class ToolOutput:
    """What a tool body returns on success: display text plus optional structured data."""

    text: str
    data: Any = None


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable metadata for a registered tool."""

    name: str
    description: str
    input_schema: dict[str, Any]
    category: ToolCategory
    required_permission: PermissionLevel

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "category": self.category.value,
            "requiredPermission": self.required_permission.value,
        }


class BaseTool(ABC):
    """Abstract base class for gateway tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name used in tools/call (e.g. 'teams-list-members')."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def params_model(self) -> type[ToolParams]:
        """Pydantic model the raw arguments are validated against."""
        return NoParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.support

    @property
    def required_permission(self) -> PermissionLevel:
        """Permission needed to run the tool. Fail-closed default: Owner."""
        return PermissionLevel.owner

    @property
    def parameters(self) -> dict:
        """JSON Schema describing the tool's input parameters."""
        return self.params_model.model_json_schema(by_alias=True)

    def describe(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.parameters,
            category=self.category,
            required_permission=self.required_permission,
        )

    @abstractmethod
    async def execute(self, arguments: Any, context: ExecutionContext) -> ToolOutput:
        """Run the tool body with validated arguments and the resolved context.

        arguments is an instance of params_model. Collaborator failures are
        raised (DirectoryError) and normalized by the invocation pipeline.
        """
        ...
