"""Tests for ToolRegistry registration rules and lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from src.infra.errors import ToolNotFoundError
from src.tools.base import BaseTool, NoParams, PermissionLevel, ToolCategory, ToolOutput
from src.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from src.tools.context import ExecutionContext


class _Tool(BaseTool):
    def __init__(
        self,
        name: str,
        category: ToolCategory = ToolCategory.support,
        permission: PermissionLevel = PermissionLevel.guest,
    ) -> None:
        self._name = name
        self._category = category
        self._permission = permission

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"{self._name} tool"

    @property
    def category(self) -> ToolCategory:
        return self._category

    @property
    def required_permission(self) -> PermissionLevel:
        return self._permission

    async def execute(self, arguments: NoParams, context: ExecutionContext) -> ToolOutput:
        return ToolOutput(text=self._name)


class TestRegister:
    def test_register_and_get(self) -> None:
        registry = ToolRegistry()
        entry = registry.register(_Tool("a"))
        assert registry.get("a") is entry
        assert entry.descriptor.name == "a"
        assert "a" in registry
        assert len(registry) == 1

    def test_duplicate_name_fails_at_registration(self) -> None:
        registry = ToolRegistry()
        registry.register(_Tool("dup"))
        with pytest.raises(ValueError, match="already registered"):
            registry.register(_Tool("dup", ToolCategory.files))
        assert len(registry) == 1

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not be empty"):
            ToolRegistry().register(_Tool(""))

    def test_organizer_on_non_meeting_tool_rejected(self) -> None:
        with pytest.raises(ValueError, match="requires Organizer"):
            ToolRegistry().register(
                _Tool("bad", ToolCategory.files, PermissionLevel.organizer)
            )

    def test_organizer_on_meeting_tool_accepted(self) -> None:
        registry = ToolRegistry()
        registry.register(_Tool("ok", ToolCategory.meetings, PermissionLevel.organizer))
        assert "ok" in registry

    def test_frozen_registry_rejects_registration(self) -> None:
        registry = ToolRegistry()
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register(_Tool("late"))


class TestLookup:
    def test_get_unknown_returns_none(self) -> None:
        assert ToolRegistry().get("missing") is None

    def test_lookup_unknown_raises(self) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            ToolRegistry().lookup("missing")
        assert exc_info.value.tool_name == "missing"
        assert exc_info.value.rpc_code == -32601
        assert str(exc_info.value) == "Tool not found: missing"


class TestListing:
    def test_empty_registry_lists_nothing(self) -> None:
        registry = ToolRegistry()
        assert registry.list_descriptors() == ()
        assert registry.get_tools_schema() == []

    def test_registration_order_preserved(self) -> None:
        registry = ToolRegistry()
        for name in ("c", "a", "b"):
            registry.register(_Tool(name))
        assert [d.name for d in registry.list_descriptors()] == ["c", "a", "b"]

    def test_snapshot_unaffected_by_later_registration(self) -> None:
        registry = ToolRegistry()
        registry.register(_Tool("a"))
        snapshot = registry.list_descriptors()
        registry.register(_Tool("b"))
        assert len(snapshot) == 1

    def test_schema_wire_keys(self) -> None:
        registry = ToolRegistry()
        registry.register(_Tool("a", ToolCategory.files, PermissionLevel.member))
        (wire,) = registry.get_tools_schema()
        assert set(wire) == {"name", "description", "inputSchema", "category", "requiredPermission"}
        assert wire["category"] == "Files"
        assert wire["requiredPermission"] == "Member"

    def test_by_category(self) -> None:
        registry = ToolRegistry()
        registry.register(_Tool("a", ToolCategory.files))
        registry.register(_Tool("b", ToolCategory.polls))
        registry.register(_Tool("c", ToolCategory.files))
        grouped = registry.by_category()
        assert [d.name for d in grouped["Files"]] == ["a", "c"]
        assert [d.name for d in grouped["Polls"]] == ["b"]
