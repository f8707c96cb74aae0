"""Tests for ExecutionContext."""

from __future__ import annotations

import uuid

import pytest

from src.directory.client import UserIdentity
from src.tools.base import PermissionLevel
from src.tools.context import ExecutionContext, new_correlation_id


class TestExecutionContext:
    def test_defaults_are_unauthenticated_guest(self) -> None:
        ctx = ExecutionContext()
        assert ctx.identity.is_empty
        assert ctx.is_authenticated is False
        assert ctx.permission_level is PermissionLevel.guest
        assert ctx.current_team_id is None
        assert ctx.authentication_error is None

    def test_correlation_id_is_fresh_uuid(self) -> None:
        a, b = ExecutionContext(), ExecutionContext()
        assert a.correlation_id != b.correlation_id
        uuid.UUID(a.correlation_id)

    def test_authenticated_with_identity(self) -> None:
        ctx = ExecutionContext(identity=UserIdentity(display_name="Ada", user_id="u1"))
        assert ctx.is_authenticated is True

    def test_frozen_immutable(self) -> None:
        ctx = ExecutionContext()
        with pytest.raises(AttributeError):
            ctx.current_team_id = "other"  # type: ignore[misc]

    def test_with_team_clears_channel(self) -> None:
        ctx = ExecutionContext(current_team_id="t1", current_channel_id="c1")
        moved = ctx.with_team("t2", PermissionLevel.owner)
        assert moved.current_team_id == "t2"
        assert moved.current_channel_id is None
        assert moved.permission_level is PermissionLevel.owner
        assert moved.correlation_id == ctx.correlation_id
        assert ctx.current_team_id == "t1"

    def test_with_channel(self) -> None:
        ctx = ExecutionContext(current_team_id="t1").with_channel("c9")
        assert ctx.current_channel_id == "c9"
        assert ctx.current_team_id == "t1"


def test_new_correlation_id_format() -> None:
    assert uuid.UUID(new_correlation_id()).version == 4
