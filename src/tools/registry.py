from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.infra.errors import ToolNotFoundError
from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolDescriptor

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegisteredTool:
    """A tool body paired with the descriptor captured at registration time."""

    descriptor: ToolDescriptor
    tool: BaseTool


class ToolRegistry:
    """Catalog of gateway tools keyed by unique name.

    Populated once during startup, then frozen. Request handlers only read,
    so concurrent lookups need no locking.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._frozen = False

    def register(self, tool: BaseTool) -> RegisteredTool:
        """Register a tool.

        Raises ValueError if the name is already registered or an Organizer
        requirement is declared on a non-meeting tool.
        Raises RuntimeError if the registry has been frozen.
        """
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register '{tool.name}'")
        descriptor = tool.describe()
        if not descriptor.name:
            raise ValueError("Tool name must not be empty")
        if descriptor.name in self._tools:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        if (
            descriptor.required_permission is PermissionLevel.organizer
            and descriptor.category is not ToolCategory.meetings
        ):
            raise ValueError(
                f"Tool '{descriptor.name}' requires Organizer but is not a meeting tool "
                f"(category={descriptor.category.value})"
            )
        entry = RegisteredTool(descriptor=descriptor, tool=tool)
        self._tools[descriptor.name] = entry
        logger.info(
            "tool_registered",
            tool_name=descriptor.name,
            category=descriptor.category.value,
            required_permission=descriptor.required_permission.value,
        )
        return entry

    def freeze(self) -> None:
        """Make the registry read-only for the rest of the process lifetime."""
        self._frozen = True
        logger.info("tool_registry_frozen", tool_count=len(self._tools))

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> RegisteredTool | None:
        """Get a tool by name. Returns None if not found."""
        return self._tools.get(name)

    def lookup(self, name: str) -> RegisteredTool:
        """Get a tool by name. Raises ToolNotFoundError if not found."""
        entry = self._tools.get(name)
        if entry is None:
            raise ToolNotFoundError(name)
        return entry

    def list_descriptors(self) -> tuple[ToolDescriptor, ...]:
        """Snapshot of all descriptors in registration order."""
        return tuple(entry.descriptor for entry in self._tools.values())

    def get_tools_schema(self) -> list[dict]:
        """Return descriptors in tools/list wire format.

        Output format:
        [{"name": ..., "description": ..., "inputSchema": ..., "category": ..., "requiredPermission": ...}]
        """
        return [d.to_wire() for d in self.list_descriptors()]

    def by_category(self) -> dict[str, list[ToolDescriptor]]:
        grouped: dict[str, list[ToolDescriptor]] = {}
        for descriptor in self.list_descriptors():
            grouped.setdefault(descriptor.category.value, []).append(descriptor)
        return grouped

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
