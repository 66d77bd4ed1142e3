"""MCP (Model Context Protocol) implementation with JSON-RPC 2.0."""

from woo_mcp.mcp.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    McpError,
)
from woo_mcp.mcp.models import (
    JsonRpcError,
    JsonRpcMessage,
    JsonRpcResponse,
    TextContent,
    Tool,
    ToolCallResult,
)
from woo_mcp.mcp.registry import (
    CapabilityKind,
    CapabilityRegistry,
    CapabilityStates,
    DirectCallback,
    RestAlias,
)

__all__ = [
    "JsonRpcMessage",
    "JsonRpcResponse",
    "JsonRpcError",
    "Tool",
    "TextContent",
    "ToolCallResult",
    "CapabilityKind",
    "CapabilityRegistry",
    "CapabilityStates",
    "DirectCallback",
    "RestAlias",
    "McpError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
]
