"""Custom exception hierarchy for teamsgate.

All application-specific exceptions inherit from TeamsGateError,
which carries a string error code for logging and envelope mapping.
Tool invocation failures additionally carry the numeric status that is
reported inside a tools/call result (400/401/403/404/500).
"""

from __future__ import annotations


class TeamsGateError(Exception):
    """Base exception for all teamsgate errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ProtocolError(TeamsGateError):
    """Malformed envelope, unknown method or bad protocol params.

    Never reaches the invocation pipeline. rpc_code is the JSON-RPC error code.
    """

    def __init__(self, message: str, *, code: str = "PARSE_ERROR", rpc_code: int = -32700) -> None:
        super().__init__(message, code=code)
        self.rpc_code = rpc_code


class ToolNotFoundError(ProtocolError):
    """tools/call named a tool that was never registered."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}", code="TOOL_NOT_FOUND", rpc_code=-32601)
        self.tool_name = tool_name


class ToolError(TeamsGateError):
    """A tools/call failure that is reported inside the result envelope."""

    status: int = 500

    def __init__(self, message: str, *, code: str = "TOOL_ERROR", status: int | None = None) -> None:
        super().__init__(message, code=code)
        if status is not None:
            self.status = status


class ToolValidationError(ToolError):
    """Arguments failed the tool's declared schema. errors lists every violation."""

    status = 400

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            "Validation failed:\n" + "\n".join(f"  - {e}" for e in errors),
            code="VALIDATION_ERROR",
        )
        self.errors = errors


class AuthorizationError(ToolError):
    """Caller permission level is insufficient, or no team context is set."""

    status = 403

    def __init__(self, message: str, *, required: str, actual: str) -> None:
        super().__init__(message, code="AUTHORIZATION_ERROR")
        self.required = required
        self.actual = actual


class AuthenticationError(ToolError):
    """No session could be established (detection exhausted, device code failed)."""

    status = 401

    def __init__(self, message: str, *, code: str = "AUTHENTICATION_ERROR") -> None:
        super().__init__(message, code=code)


class UpstreamError(ToolError):
    """The directory collaborator called by a tool body failed."""

    status = 500

    def __init__(self, message: str, *, status: int = 500) -> None:
        super().__init__(message, code="UPSTREAM_ERROR", status=status)


class DirectoryError(TeamsGateError):
    """Raised by DirectoryClient implementations. status mirrors the upstream HTTP status."""

    def __init__(self, message: str, *, status: int = 500) -> None:
        super().__init__(message, code="DIRECTORY_ERROR")
        self.status = status


class CredentialProbeError(TeamsGateError):
    """A credential source probe could not complete (timeout, bad output)."""

    def __init__(self, message: str, *, code: str = "PROBE_FAILED") -> None:
        super().__init__(message, code=code)
