"""JSON-RPC 2.0 envelope models.

A response carries either result or error, never both, and echoes the
request id unchanged (any JSON value, structured ids included). Envelopes
that cannot be parsed are answered with the null id.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.infra.errors import ProtocolError

JSONRPC_VERSION = "2.0"


class ErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class RPCRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    jsonrpc: str | None = None
    id: Any = None
    method: str = Field(..., min_length=1)
    params: dict[str, Any] | None = None

    @field_validator("jsonrpc")
    @classmethod
    def _validate_version(cls, v: str | None) -> str | None:
        if v is not None and v != JSONRPC_VERSION:
            raise ValueError(f"jsonrpc must be '{JSONRPC_VERSION}' (got '{v}')")
        return v


class ToolCallParams(BaseModel):
    """params of tools/call. arguments must be a JSON object when present."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tool name must not be blank")
        return v


class RPCErrorData(BaseModel):
    code: int
    message: str
    data: Any = None


class RPCResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Any = None
    result: Any = None
    error: RPCErrorData | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> Self:
        if (self.result is None) == (self.error is None):
            raise ValueError("A response must carry exactly one of result or error")
        return self

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            wire["error"] = self.error.model_dump(exclude_none=True)
        else:
            wire["result"] = self.result
        return wire


def success_response(request_id: Any, result: Any) -> dict[str, Any]:
    return RPCResponse(id=request_id, result=result).to_wire()


def error_response(
    request_id: Any, code: int, message: str, data: Any = None
) -> dict[str, Any]:
    return RPCResponse(
        id=request_id, error=RPCErrorData(code=int(code), message=message, data=data)
    ).to_wire()


def parse_rpc_request(raw: str | bytes | dict[str, Any]) -> RPCRequest:
    """Parse one envelope.

    Raises ProtocolError(code="PARSE_ERROR") on invalid JSON or a malformed envelope.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Request is not valid UTF-8: {e}") from e
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
    else:
        data = raw
    if not isinstance(data, dict):
        raise ProtocolError(f"Request must be a JSON object (got {type(data).__name__})")
    try:
        return RPCRequest.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid request envelope: {e}") from e


def parse_tool_call_params(params: dict[str, Any] | None) -> ToolCallParams:
    """Raises ProtocolError(code="INVALID_PARAMS", rpc_code=-32602) on bad params."""
    try:
        return ToolCallParams.model_validate(params or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in e.errors()
        )
        raise ProtocolError(
            f"Invalid params: {problems}",
            code="INVALID_PARAMS",
            rpc_code=ErrorCode.INVALID_PARAMS,
        ) from e
