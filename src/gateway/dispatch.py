"""Protocol gateway: one envelope in, one envelope out.

Routes initialize / tools/list / tools/call / ping. Shared by the HTTP and
stdio bindings so both speak exactly the same protocol.
handle() never raises; only task cancellation propagates.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from src.constants import (
    PROTOCOL_VERSION,
    SERVER_DESCRIPTION,
    SERVER_NAME,
    SERVER_VERSION,
    UNKNOWN_REQUEST_ID,
)
from src.gateway.protocol import (
    ErrorCode,
    error_response,
    parse_rpc_request,
    parse_tool_call_params,
    success_response,
)
from src.infra.errors import ProtocolError
from src.tools.pipeline import InvocationPipeline
from src.tools.registry import ToolRegistry

logger = structlog.get_logger()

MethodHandler = Callable[[dict[str, Any]], Awaitable[Any]]


def server_info() -> dict[str, str]:
    return {"name": SERVER_NAME, "version": SERVER_VERSION, "description": SERVER_DESCRIPTION}


class ProtocolGateway:
    def __init__(self, registry: ToolRegistry, pipeline: InvocationPipeline) -> None:
        self._registry = registry
        self._pipeline = pipeline
        self._handlers: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "ping": self._ping,
        }

    @property
    def methods(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    async def handle(self, raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
        try:
            request = parse_rpc_request(raw)
        except ProtocolError as e:
            logger.info("rpc_parse_failed", error=str(e))
            return error_response(
                UNKNOWN_REQUEST_ID, ErrorCode.PARSE_ERROR, "Parse error", data={"detail": str(e)}
            )

        handler = self._handlers.get(request.method)
        if handler is None:
            logger.info("rpc_method_not_found", method=request.method)
            return error_response(
                request.id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )

        logger.debug("rpc_request", method=request.method)
        try:
            result = await handler(request.params or {})
        except ProtocolError as e:
            logger.info("rpc_request_rejected", method=request.method, error_code=e.code)
            return error_response(request.id, e.rpc_code, str(e))
        except Exception:
            logger.exception("rpc_internal_error", method=request.method)
            return error_response(request.id, ErrorCode.INTERNAL_ERROR, "Internal error")
        return success_response(request.id, result)

    async def handle_line(self, line: str | bytes) -> str:
        """handle() serialized as one compact JSON line (no trailing newline)."""
        response = await self.handle(line)
        return json.dumps(response, separators=(",", ":"), default=str)

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        logger.info(
            "client_initialized",
            client_name=client.get("name") if isinstance(client, dict) else None,
            client_protocol=params.get("protocolVersion"),
        )
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": server_info(),
            "capabilities": {
                "tools": {"list": True, "call": True},
                "resources": {"list": False, "read": False},
                "prompts": {"list": False, "get": False},
            },
        }

    async def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": self._registry.get_tools_schema()}

    async def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        call = parse_tool_call_params(params)
        # Raises ToolNotFoundError before any context is resolved.
        entry = self._registry.lookup(call.name)
        result = await self._pipeline.invoke(entry, call.arguments)
        return result.to_wire()

    async def _ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"status": "pong", "timestamp": datetime.now(UTC).isoformat()}
