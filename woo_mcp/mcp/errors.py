"""JSON-RPC 2.0 error codes, the MCP error hierarchy and error response helpers."""

from typing import Any

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700  # Invalid JSON was received
INVALID_REQUEST = -32600  # The JSON sent is not a valid Request object
METHOD_NOT_FOUND = -32601  # The method does not exist / is not available
INVALID_PARAMS = -32602  # Invalid method parameter(s)
INTERNAL_ERROR = -32603  # Internal JSON-RPC error

# Custom error codes (server-defined, must be between -32000 and -32099)
TOOL_EXECUTION_ERROR = -32000  # Tool execution failed or was not permitted
AUTHENTICATION_ERROR = -32001  # Authentication required or failed
RATE_LIMIT_ERROR = -32002  # Too many active tokens


def error_message(code: int) -> str:
    """Get the standard message for a JSON-RPC error code."""
    messages = {
        PARSE_ERROR: "Parse error",
        INVALID_REQUEST: "Invalid Request",
        METHOD_NOT_FOUND: "Method not found",
        INVALID_PARAMS: "Invalid params",
        INTERNAL_ERROR: "Internal error",
        TOOL_EXECUTION_ERROR: "Tool execution error",
        AUTHENTICATION_ERROR: "Authentication required",
        RATE_LIMIT_ERROR: "Rate limit exceeded",
    }
    return messages.get(code, "Unknown error")


def make_error_data(code: int, message: str | None = None, data: Any = None) -> dict[str, Any]:
    """Create an error object for JSON-RPC response."""
    error: dict[str, Any] = {
        "code": code,
        "message": message or error_message(code),
    }
    if data is not None:
        error["data"] = data
    return error


def error_response(request_id: Any, error: dict[str, Any]) -> dict[str, Any]:
    """Wrap an error object into a full JSON-RPC response envelope."""
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


# =============================================================================
# Exception hierarchy
# =============================================================================


class McpError(Exception):
    """Base class for failures that map onto a JSON-RPC error."""

    code = INTERNAL_ERROR
    http_status = 500

    def __init__(self, message: str | None = None, data: Any = None):
        self.message = message or error_message(self.code)
        self.data = data
        super().__init__(self.message)

    def to_error_data(self) -> dict[str, Any]:
        return make_error_data(self.code, self.message, self.data)


class ParseError(McpError):
    code = PARSE_ERROR
    http_status = 400


class InvalidRequestError(McpError):
    code = INVALID_REQUEST
    http_status = 400


class MethodNotFoundError(McpError):
    code = METHOD_NOT_FOUND
    http_status = 404


class NotFoundError(McpError):
    """A named capability, resource, prompt or token does not exist."""

    code = METHOD_NOT_FOUND
    http_status = 404

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} not found: {name}")


class InvalidParamsError(McpError):
    code = INVALID_PARAMS
    http_status = 400


class InternalError(McpError):
    code = INTERNAL_ERROR
    http_status = 500


class BackendUnavailableError(InternalError):
    """The REST backend timed out or could not be reached."""


class ToolExecutionError(McpError):
    code = TOOL_EXECUTION_ERROR
    http_status = 500


class PermissionDeniedError(McpError):
    code = TOOL_EXECUTION_ERROR
    http_status = 403


class AuthenticationError(McpError):
    """Missing or unacceptable credentials.

    Every cause carries the same public message so callers cannot tell an
    unknown token from a revoked or expired one.
    """

    code = AUTHENTICATION_ERROR
    http_status = 403
    public_message = "Authentication required"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.public_message
        super().__init__(self.public_message)


class InvalidTokenError(AuthenticationError):
    """The credential failed signature or claim verification."""


class TokenInvalidError(AuthenticationError):
    """The credential verified but its registry entry is missing, revoked or expired."""


class InvalidExpirationError(McpError):
    code = INVALID_PARAMS
    http_status = 400


class TokenLimitExceededError(McpError):
    code = RATE_LIMIT_ERROR
    http_status = 429


# =============================================================================
# Configuration errors (raised during bootstrap, never at request time)
# =============================================================================


class ConfigurationError(ValueError):
    """Invalid capability definition or registry usage."""


class DuplicateNameError(ConfigurationError):
    pass


class SchemaError(ConfigurationError):
    pass


class RegistryFrozenError(ConfigurationError):
    pass
