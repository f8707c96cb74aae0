"""Tests for JSON-RPC envelope parsing and response construction."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.gateway.protocol import (
    ErrorCode,
    RPCErrorData,
    RPCResponse,
    error_response,
    parse_rpc_request,
    parse_tool_call_params,
    success_response,
)
from src.infra.errors import ProtocolError


class TestParseRpcRequest:
    def test_parse_string(self) -> None:
        req = parse_rpc_request('{"jsonrpc": "2.0", "id": 7, "method": "ping"}')
        assert req.id == 7
        assert req.method == "ping"
        assert req.params is None

    def test_parse_bytes_and_dict(self) -> None:
        assert parse_rpc_request(b'{"id": "a", "method": "ping"}').id == "a"
        assert parse_rpc_request({"id": None, "method": "ping"}).id is None

    def test_structured_id_preserved(self) -> None:
        req = parse_rpc_request({"id": {"seq": [1, 2]}, "method": "ping"})
        assert req.id == {"seq": [1, 2]}

    def test_jsonrpc_field_optional(self) -> None:
        assert parse_rpc_request({"id": 1, "method": "ping"}).jsonrpc is None

    def test_invalid_json(self) -> None:
        with pytest.raises(ProtocolError, match="Invalid JSON") as exc_info:
            parse_rpc_request("{not json")
        assert exc_info.value.rpc_code == -32700

    def test_non_object(self) -> None:
        with pytest.raises(ProtocolError, match="JSON object"):
            parse_rpc_request("[1, 2]")

    def test_missing_method(self) -> None:
        with pytest.raises(ProtocolError, match="Invalid request envelope"):
            parse_rpc_request({"id": 1})

    def test_wrong_version(self) -> None:
        with pytest.raises(ProtocolError):
            parse_rpc_request({"jsonrpc": "1.0", "id": 1, "method": "ping"})

    def test_params_must_be_object(self) -> None:
        with pytest.raises(ProtocolError):
            parse_rpc_request({"id": 1, "method": "ping", "params": [1]})

    def test_invalid_utf8(self) -> None:
        with pytest.raises(ProtocolError, match="UTF-8"):
            parse_rpc_request(b"\xff\xfe")


class TestToolCallParams:
    def test_valid(self) -> None:
        p = parse_tool_call_params({"name": " teams-help ", "arguments": {"a": 1}})
        assert p.name == "teams-help"
        assert p.arguments == {"a": 1}

    def test_arguments_optional(self) -> None:
        assert parse_tool_call_params({"name": "x"}).arguments is None

    @pytest.mark.parametrize(
        "params",
        [None, {}, {"name": ""}, {"name": "   "}, {"name": 5}, {"name": "x", "arguments": [1]},
         {"name": "x", "arguments": "a=1"}],
    )
    def test_invalid(self, params: dict | None) -> None:
        with pytest.raises(ProtocolError, match="Invalid params") as exc_info:
            parse_tool_call_params(params)
        assert exc_info.value.rpc_code == ErrorCode.INVALID_PARAMS


class TestResponses:
    def test_success_shape(self) -> None:
        assert success_response(3, {"ok": True}) == {
            "jsonrpc": "2.0", "id": 3, "result": {"ok": True},
        }

    def test_error_shape_without_data(self) -> None:
        assert error_response("x", ErrorCode.METHOD_NOT_FOUND, "Method not found: y") == {
            "jsonrpc": "2.0",
            "id": "x",
            "error": {"code": -32601, "message": "Method not found: y"},
        }

    def test_error_with_data(self) -> None:
        wire = error_response(None, -32700, "Parse error", data={"detail": "bad"})
        assert wire["id"] is None
        assert wire["error"]["data"] == {"detail": "bad"}

    def test_never_both_result_and_error(self) -> None:
        with pytest.raises(ValidationError):
            RPCResponse(id=1, result={}, error=RPCErrorData(code=-32603, message="x"))

    def test_never_neither(self) -> None:
        with pytest.raises(ValidationError):
            RPCResponse(id=1)
