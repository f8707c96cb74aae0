"""Tests for BaseTool defaults, ToolParams schema generation and descriptors."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import Field, ValidationError

from src.tools.base import (
    BaseTool,
    NoParams,
    PermissionLevel,
    ToolCategory,
    ToolOutput,
    ToolParams,
)

if TYPE_CHECKING:
    from src.tools.context import ExecutionContext


class _DefaultTool(BaseTool):
    """Declares nothing beyond name/description/execute."""

    @property
    def name(self) -> str:
        return "test-default"

    @property
    def description(self) -> str:
        return "Tool relying on every default"

    async def execute(self, arguments: NoParams, context: ExecutionContext) -> ToolOutput:
        return ToolOutput(text="ok")


class _SearchParams(ToolParams):
    search_term: str = Field(..., min_length=1, description="What to look for.")
    max_results: int = Field(10, ge=1, le=50)


class _SearchTool(_DefaultTool):
    @property
    def name(self) -> str:
        return "test-search"

    @property
    def params_model(self) -> type[_SearchParams]:
        return _SearchParams

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.messaging

    @property
    def required_permission(self) -> PermissionLevel:
        return PermissionLevel.member


class TestDefaults:
    def test_default_permission_is_owner(self) -> None:
        assert _DefaultTool().required_permission is PermissionLevel.owner

    def test_default_category_is_support(self) -> None:
        assert _DefaultTool().category is ToolCategory.support

    def test_default_params_model(self) -> None:
        assert _DefaultTool().params_model is NoParams

    def test_no_params_schema_rejects_extra(self) -> None:
        schema = _DefaultTool().parameters
        assert schema["type"] == "object"
        assert schema.get("additionalProperties") is False


class TestParamsSchema:
    def test_camel_case_property_names(self) -> None:
        schema = _SearchTool().parameters
        assert set(schema["properties"]) == {"searchTerm", "maxResults"}
        assert schema["required"] == ["searchTerm"]

    def test_field_description_kept(self) -> None:
        schema = _SearchTool().parameters
        assert schema["properties"]["searchTerm"]["description"] == "What to look for."

    def test_accepts_camel_case_input(self) -> None:
        params = _SearchParams.model_validate({"searchTerm": "budget", "maxResults": 5})
        assert params.search_term == "budget"
        assert params.max_results == 5

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _SearchParams.model_validate({"searchTerm": "x", "bogus": 1})

    def test_whitespace_stripped(self) -> None:
        params = _SearchParams.model_validate({"searchTerm": "  x  "})
        assert params.search_term == "x"


class TestDescriptor:
    def test_describe_captures_metadata(self) -> None:
        d = _SearchTool().describe()
        assert d.name == "test-search"
        assert d.category is ToolCategory.messaging
        assert d.required_permission is PermissionLevel.member
        assert d.input_schema == _SearchTool().parameters

    def test_wire_format(self) -> None:
        wire = _SearchTool().describe().to_wire()
        assert wire == {
            "name": "test-search",
            "description": "Tool relying on every default",
            "inputSchema": _SearchTool().parameters,
            "category": "Messaging",
            "requiredPermission": "Member",
        }

    def test_descriptor_is_frozen(self) -> None:
        d = _SearchTool().describe()
        with pytest.raises(AttributeError):
            d.name = "other"  # type: ignore[misc]
