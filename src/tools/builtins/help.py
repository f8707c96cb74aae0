from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from src.tools.base import BaseTool, PermissionLevel, ToolCategory, ToolOutput, ToolParams

if TYPE_CHECKING:
    from src.tools.context import ExecutionContext
    from src.tools.registry import ToolRegistry


class HelpParams(ToolParams):
    category: ToolCategory | None = Field(None, description="Only list tools in this category.")


class HelpTool(BaseTool):
    """Lists the registered catalog grouped by category."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def name(self) -> str:
        return "teams-help"

    @property
    def description(self) -> str:
        return "List the available Teams tools by category with the permission each one needs."

    @property
    def params_model(self) -> type[HelpParams]:
        return HelpParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.support

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.member

    async def execute(self, arguments: HelpParams, context: ExecutionContext) -> ToolOutput:
        grouped = self._registry.by_category()
        if arguments.category is not None:
            grouped = {k: v for k, v in grouped.items() if k == arguments.category.value}

        lines: list[str] = []
        data: dict[str, list[dict]] = {}
        for category, descriptors in grouped.items():
            lines.append(f"{category}:")
            for d in descriptors:
                lines.append(f"  {d.name} [{d.required_permission.value}] - {d.description}")
            data[category] = [
                {"name": d.name, "requiredPermission": d.required_permission.value}
                for d in descriptors
            ]
        if not lines:
            lines.append("No tools in that category.")
        return ToolOutput(text="\n".join(lines), data=data)
