"""MCP method handlers for JSON-RPC requests."""

import base64
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import ValidationError

from woo_mcp.mcp.errors import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    InvalidParamsError,
    McpError,
    NotFoundError,
    make_error_data,
)
from woo_mcp.mcp.models import (
    ImageContent,
    InitializeParams,
    InitializeResult,
    ServerInfo,
    TextContent,
    ToolCallResult,
    encode_message,
)
from woo_mcp.mcp.registry import CapabilityKind, CapabilityRegistry
from woo_mcp.utils.logging import get_logger

if TYPE_CHECKING:
    from woo_mcp.mcp.transport_sse import Session
    from woo_mcp.security.users import Principal

# Default MCP protocol version, answered to clients asking for anything unknown
PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

# Syslog severities accepted by logging/setLevel
LOGGING_LEVELS = ("debug", "info", "notice", "warning", "error", "critical", "alert", "emergency")

# Argument values treated as "not provided" by tools/call
EMPTY_ARGUMENT_VALUES = (None, "", "null")

DEFAULT_INSTRUCTIONS = (
    "This server exposes a WooCommerce store. Use the wc_* tools to browse "
    "products, categories and store settings, and read the "
    "woocommerce://search-guide resource before searching for products."
)


@dataclass
class RequestContext:
    """Who is calling, and over which session."""

    principal: "Principal | None" = None
    session: "Session | None" = None


def negotiate_protocol_version(requested: Any) -> str:
    """Echo a supported version, otherwise fall back to the default."""
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return PROTOCOL_VERSION


def strip_empty_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Drop arguments clients send as placeholders; 0 and False are kept."""
    return {
        key: value
        for key, value in arguments.items()
        if not (
            (isinstance(value, str) and value in EMPTY_ARGUMENT_VALUES)
            or value is None
            or (isinstance(value, (list, dict)) and not value)
        )
    }


def format_tool_result(result: Any) -> ToolCallResult:
    """Wrap a raw tool result as MCP content."""
    if isinstance(result, dict) and result.get("type") == "image":
        data = result.get("results", b"")
        if isinstance(data, str):
            data = data.encode("utf-8")
        return ToolCallResult(
            content=[
                ImageContent(
                    data=base64.b64encode(data).decode("ascii"),
                    mimeType=result.get("mimeType", "image/png"),
                )
            ]
        )
    text = result if isinstance(result, str) else encode_message(result)
    return ToolCallResult(content=[TextContent(text=text)])


def require_string(params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    return value


def optional_dict(params: dict[str, Any], key: str) -> dict[str, Any]:
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidParamsError(f"Parameter '{key}' must be an object")
    return value


Handler = Callable[[dict[str, Any], RequestContext], Awaitable[Any]]


class MCPHandlers:
    """Handlers for MCP protocol methods."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        server_name: str = "woo-mcp",
        server_version: str = "1.0.0",
        store_info: dict[str, Any] | None = None,
        instructions: str = DEFAULT_INSTRUCTIONS,
        logger: Any = None,
    ):
        self.registry = registry
        self.server_name = server_name
        self.server_version = server_version
        self.store_info = store_info or {}
        self.instructions = instructions
        self.logger = logger or get_logger("handlers")
        self._handlers: dict[str, Handler] = {
            "initialize": self.handle_initialize,
            "ping": self.handle_ping,
            "notifications/initialized": self.handle_initialized,
            "notifications/cancelled": self.handle_cancelled,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
            "resources/list": self.handle_resources_list,
            "resources/templates/list": self.handle_resource_templates_list,
            "resources/read": self.handle_resources_read,
            "resources/subscribe": self.handle_resources_subscribe,
            "resources/unsubscribe": self.handle_resources_unsubscribe,
            "prompts/list": self.handle_prompts_list,
            "prompts/get": self.handle_prompts_get,
            "logging/setLevel": self.handle_logging_set_level,
            "completion/complete": self.handle_completion_complete,
            "roots/list": self.handle_roots_list,
        }

    @property
    def methods(self) -> list[str]:
        return list(self._handlers)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def handle_initialize(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        """Handle the initialize request."""
        try:
            init_params = InitializeParams(**params)
            self.logger.info(
                "Client initializing",
                client=init_params.clientInfo.name,
                client_version=init_params.clientInfo.version,
                requested_version=init_params.protocolVersion,
            )
        except ValidationError as e:
            # Still proceed with defaults
            self.logger.warning("Invalid initialize params", error=str(e))

        server_info: dict[str, Any] = {"name": self.server_name, "version": self.server_version}
        if self.store_info:
            server_info["store"] = self.store_info

        result = InitializeResult(
            protocolVersion=negotiate_protocol_version(params.get("protocolVersion")),
            capabilities={
                "tools": {"listChanged": False},
                "resources": {"subscribe": True, "listChanged": False},
                "prompts": {"listChanged": False},
                "logging": {},
                "completions": {},
            },
            serverInfo=ServerInfo(**server_info),
            instructions=self.instructions,
        )
        return result.model_dump(exclude_none=True)

    async def handle_initialized(self, params: dict[str, Any], context: RequestContext) -> None:
        """Handle the notifications/initialized notification (no response)."""
        self.logger.info("Client confirmed initialization")
        return None

    async def handle_cancelled(self, params: dict[str, Any], context: RequestContext) -> None:
        # Requests are answered synchronously, so there is nothing to cancel
        self.logger.info("Client cancelled request", request_id=params.get("requestId"), reason=params.get("reason"))
        return None

    async def handle_ping(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        return {}

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    async def handle_tools_list(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        """Handle the tools/list request."""
        return {"tools": [tool.model_dump(exclude_none=True) for tool in self.registry.list_tools()]}

    async def handle_tools_call(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        """Handle the tools/call request."""
        name = require_string(params, "name")
        arguments = strip_empty_arguments(optional_dict(params, "arguments"))

        self.logger.info("Calling tool", tool=name)
        result = await self.registry.invoke(name, arguments, context.principal)
        return format_tool_result(result).model_dump()

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    async def handle_resources_list(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        return {"resources": [r.model_dump(exclude_none=True) for r in self.registry.list_resources()]}

    async def handle_resource_templates_list(
        self, params: dict[str, Any], context: RequestContext
    ) -> dict[str, Any]:
        return {"resourceTemplates": []}

    async def handle_resources_read(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        uri = require_string(params, "uri")
        contents = await self.registry.read_resource(uri)
        return {"contents": [contents.model_dump()]}

    async def handle_resources_subscribe(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        uri = require_string(params, "uri")
        if self.registry.get_resource_by_uri(uri) is None:
            raise NotFoundError("resource", uri)
        if context.session is not None:
            context.session.subscriptions.add(uri)
        return {}

    async def handle_resources_unsubscribe(
        self, params: dict[str, Any], context: RequestContext
    ) -> dict[str, Any]:
        uri = require_string(params, "uri")
        if context.session is not None:
            context.session.subscriptions.discard(uri)
        return {}

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    async def handle_prompts_list(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        return {"prompts": [p.model_dump(exclude_none=True) for p in self.registry.list_prompts()]}

    async def handle_prompts_get(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        name = require_string(params, "name")
        arguments = optional_dict(params, "arguments")
        prompt, messages = self.registry.render_prompt(name, arguments)
        return {
            "description": prompt.description,
            "messages": [message.model_dump() for message in messages],
        }

    # -------------------------------------------------------------------------
    # Utilities
    # -------------------------------------------------------------------------

    async def handle_logging_set_level(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        level = params.get("level")
        if level not in LOGGING_LEVELS:
            raise InvalidParamsError(f"Invalid log level: {level}. Must be one of {', '.join(LOGGING_LEVELS)}")
        if context.session is not None:
            context.session.log_level = level
        self.logger.info("Client log level set", level=level)
        return {}

    async def handle_completion_complete(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        ref = optional_dict(params, "ref")
        argument = optional_dict(params, "argument")
        if not ref or not argument:
            raise InvalidParamsError("Parameters 'ref' and 'argument' are required")
        if ref.get("type") == "ref/prompt":
            self.registry.get(CapabilityKind.PROMPT, str(ref.get("name")))
        return {"completion": {"values": [], "total": 0, "hasMore": False}}

    async def handle_roots_list(self, params: dict[str, Any], context: RequestContext) -> dict[str, Any]:
        return {"roots": []}

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def dispatch(
        self,
        method: str,
        params: dict[str, Any],
        context: RequestContext | None = None,
    ) -> tuple[Any | None, dict[str, Any] | None]:
        """
        Dispatch a method call to the appropriate handler.

        Returns (result, error) tuple. One will be None.
        """
        handler = self._handlers.get(method)
        if handler is None:
            return None, make_error_data(METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            result = await handler(params, context or RequestContext())
            return result, None
        except McpError as e:
            self.logger.info("Method failed", method=method, code=e.code, error=e.message)
            return None, e.to_error_data()
        except Exception:
            self.logger.exception("Error handling method", method=method)
            return None, make_error_data(INTERNAL_ERROR)
