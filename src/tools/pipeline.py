"""Invocation pipeline for tools/call.

Fixed order for every call: validate -> resolve context -> authorize ->
execute -> normalize. A failure at any stage stops the later stages and is
turned into an error result carrying the call's correlation id. Nothing
raised by a tool body escapes invoke(), except task cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from src.auth.resolver import ContextResolver
from src.infra.errors import (
    AuthenticationError,
    AuthorizationError,
    DirectoryError,
    ToolError,
    ToolValidationError,
    UpstreamError,
)
from src.tools.base import PermissionLevel, ToolOutput, ToolParams, satisfies
from src.tools.context import ExecutionContext, new_correlation_id
from src.tools.registry import RegisteredTool

logger = structlog.get_logger()


@dataclass(frozen=True)
class ToolCallResult:
    """Normalized outcome of one tools/call. to_wire() is the JSON-RPC result payload."""

    correlation_id: str
    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    error: dict[str, Any] | None = None

    @classmethod
    def success(cls, output: ToolOutput, correlation_id: str) -> ToolCallResult:
        content: list[dict[str, Any]] = [{"type": "text", "text": output.text}]
        if output.data is not None:
            content.append(
                {"type": "json", "data": output.data, "mimeType": "application/json"}
            )
        return cls(correlation_id=correlation_id, content=content)

    @classmethod
    def failure(
        cls,
        status: int,
        message: str,
        correlation_id: str,
        *,
        error_code: str,
        data: dict[str, Any] | None = None,
    ) -> ToolCallResult:
        return cls(
            correlation_id=correlation_id,
            content=[{"type": "text", "text": message}],
            is_error=True,
            error={
                "code": status,
                "message": message,
                "data": {"errorCode": error_code, "correlationId": correlation_id, **(data or {})},
            },
        )

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "content": self.content,
            "isError": self.is_error,
            "correlationId": self.correlation_id,
        }
        if self.error is not None:
            wire["error"] = self.error
        return wire


def validate_arguments(model: type[ToolParams], raw: Any) -> ToolParams:
    """Validate raw arguments, reporting every violated field at once."""
    if raw is None:
        raw = {}
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        errors = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "arguments"
            errors.append(f"{loc}: {err['msg']}")
        raise ToolValidationError(errors) from e


def check_permission(required: PermissionLevel, context: ExecutionContext) -> None:
    """Raise unless the context may run a tool requiring `required`.

    Guest tools pass without any team lookup. An unauthenticated context
    that failed to sign in gets AuthenticationError, so the caller learns to
    sign in rather than that they lack a role.
    """
    if required is PermissionLevel.guest:
        return

    if context.authentication_error and not context.is_authenticated:
        raise AuthenticationError(
            f"Sign-in required: {context.authentication_error}. "
            "Run 'az login' or complete the device code prompt, then retry."
        )

    actual = context.permission_level
    if not context.current_team_id:
        raise AuthorizationError(
            f"This tool requires {required.value} permission in a team, but no team is "
            "selected. Call teams-select-team or set TEAMS_CURRENT_TEAM_ID.",
            required=required.value,
            actual=actual.value,
        )

    if not satisfies(actual, required):
        raise AuthorizationError(
            f"Insufficient permissions: requires {required.value}, you are {actual.value} "
            f"in team {context.current_team_id}",
            required=required.value,
            actual=actual.value,
        )


class InvocationPipeline:
    def __init__(self, resolver: ContextResolver, *, require_authentication: bool = True) -> None:
        self._resolver = resolver
        self._require_authentication = require_authentication

    async def invoke(
        self,
        entry: RegisteredTool,
        raw_arguments: Any,
        *,
        correlation_id: str | None = None,
    ) -> ToolCallResult:
        descriptor = entry.descriptor
        cid = correlation_id or new_correlation_id()

        with structlog.contextvars.bound_contextvars(correlation_id=cid, tool_name=descriptor.name):
            try:
                arguments = validate_arguments(entry.tool.params_model, raw_arguments)
                require_session = (
                    self._require_authentication
                    and descriptor.required_permission is not PermissionLevel.guest
                )
                context = await self._resolver.resolve(
                    correlation_id=cid, require_session=require_session
                )
                check_permission(descriptor.required_permission, context)
                output = await entry.tool.execute(arguments, context)
            except ToolValidationError as e:
                logger.info("tool_validation_failed", errors=e.errors)
                return ToolCallResult.failure(
                    e.status, str(e), cid, error_code=e.code, data={"errors": e.errors}
                )
            except AuthorizationError as e:
                logger.info("tool_authorization_denied", required=e.required, actual=e.actual)
                return ToolCallResult.failure(
                    e.status, str(e), cid, error_code=e.code,
                    data={"required": e.required, "actual": e.actual},
                )
            except AuthenticationError as e:
                logger.warning("tool_authentication_failed", error_code=e.code, error=str(e))
                return ToolCallResult.failure(e.status, str(e), cid, error_code=e.code)
            except DirectoryError as e:
                return self._directory_failure(e, cid)
            except ToolError as e:
                logger.warning("tool_failed", status=e.status, error_code=e.code, error=str(e))
                return ToolCallResult.failure(e.status, str(e), cid, error_code=e.code)
            except Exception:
                logger.exception("tool_execution_failed")
                return ToolCallResult.failure(
                    500,
                    f"Internal error while running {descriptor.name} (correlation id {cid})",
                    cid,
                    error_code="INTERNAL_ERROR",
                )

            logger.info("tool_executed")
            return ToolCallResult.success(output, cid)

    @staticmethod
    def _directory_failure(e: DirectoryError, cid: str) -> ToolCallResult:
        logger.warning("tool_upstream_failed", upstream_status=e.status, error=str(e))
        if e.status == 403:
            return ToolCallResult.failure(
                403, f"Permission denied by the directory service (correlation id {cid})", cid,
                error_code="FORBIDDEN",
            )
        if e.status == 404:
            return ToolCallResult.failure(
                404, f"Resource not found (correlation id {cid})", cid, error_code="NOT_FOUND"
            )
        upstream = UpstreamError(
            f"The directory service failed to complete the request (correlation id {cid})"
        )
        return ToolCallResult.failure(
            upstream.status, str(upstream), cid,
            error_code=upstream.code, data={"upstreamStatus": e.status},
        )
