"""Pydantic models for MCP JSON-RPC 2.0 protocol."""

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# JSON-RPC 2.0 Base Models
# =============================================================================


class JsonRpcMessage(BaseModel):
    """Any JSON-RPC 2.0 message: request, notification or response.

    `jsonrpc` has no default so a message missing it fails validation.
    """

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"]
    id: int | str | None = None
    method: str | None = None
    params: dict[str, Any] | list[Any] | None = None
    result: Any = None
    error: dict[str, Any] | None = None

    @property
    def is_request(self) -> bool:
        """A request carries both a method and an id."""
        return self.method is not None and self.id is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    @property
    def param_dict(self) -> dict[str, Any]:
        """Params as a dict; positional params are not used by MCP."""
        return self.params if isinstance(self.params, dict) else {}


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response object."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None = None
    result: Any = None
    error: JsonRpcError | None = None

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        """Emit exactly one of result/error, and drop empty error data."""
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        return data


# =============================================================================
# MCP Content Types
# =============================================================================


class TextContent(BaseModel):
    """Text content returned by tools."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Image content returned by tools (base64 encoded)."""

    type: Literal["image"] = "image"
    data: str  # base64 encoded
    mimeType: str


class ToolCallResult(BaseModel):
    """Result of a tool call."""

    content: list[TextContent | ImageContent]
    isError: bool = False


# =============================================================================
# MCP Capability Models (wire format)
# =============================================================================


class ToolAnnotations(BaseModel):
    """Optional behaviour hints attached to a tool."""

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    readOnlyHint: bool | None = None
    destructiveHint: bool | None = None
    idempotentHint: bool | None = None
    openWorldHint: bool | None = None


class Tool(BaseModel):
    """MCP tool definition."""

    name: str = Field(..., description="Tool name")
    description: str = Field(..., description="Human-readable description")
    inputSchema: dict[str, Any] = Field(..., description="JSON Schema for tool input")
    annotations: ToolAnnotations | None = None


class Resource(BaseModel):
    """MCP resource definition."""

    uri: str
    name: str
    description: str
    mimeType: str = "application/json"


class ResourceContents(BaseModel):
    """Contents of a read resource."""

    uri: str
    mimeType: str
    text: str


class PromptArgument(BaseModel):
    """A declared prompt argument."""

    name: str
    description: str = ""
    required: bool = False


class Prompt(BaseModel):
    """MCP prompt definition."""

    name: str
    description: str
    arguments: list[PromptArgument] = Field(default_factory=list)


class PromptMessage(BaseModel):
    """A rendered prompt message."""

    role: Literal["user", "assistant"]
    content: TextContent


# =============================================================================
# MCP Protocol Models
# =============================================================================


class ClientInfo(BaseModel):
    """Client information sent during initialization."""

    name: str
    version: str


class ServerInfo(BaseModel):
    """Server information returned during initialization."""

    model_config = ConfigDict(extra="allow")

    name: str
    version: str


class InitializeParams(BaseModel):
    """Parameters for initialize request."""

    protocolVersion: str
    capabilities: dict[str, Any] = Field(default_factory=dict)
    clientInfo: ClientInfo


class InitializeResult(BaseModel):
    """Result of initialize request."""

    protocolVersion: str
    capabilities: dict[str, Any]
    serverInfo: ServerInfo
    instructions: str | None = None


def encode_message(body: Any) -> str:
    """Compact JSON used for every message both transports write."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False, default=str)
