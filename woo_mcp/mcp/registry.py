"""Capability registry for MCP tools, resources and prompts."""

import importlib
import inspect
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from woo_mcp.mcp.errors import (
    ConfigurationError,
    DuplicateNameError,
    InternalError,
    InvalidParamsError,
    McpError,
    NotFoundError,
    PermissionDeniedError,
    RegistryFrozenError,
    SchemaError,
    ToolExecutionError,
)
from woo_mcp.mcp.models import (
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    ResourceContents,
    TextContent,
    Tool,
    ToolAnnotations,
)
from woo_mcp.utils.logging import get_logger

if TYPE_CHECKING:
    from woo_mcp.backend.client import RestBackend
    from woo_mcp.security.users import Principal

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
SCHEMA_TYPES = ("string", "number", "integer", "boolean", "array", "object", "null")

# `{id}` and the regex form `(?P<id>[\d]+)` are both accepted in routes.
ROUTE_PLACEHOLDER = re.compile(r"\{(\w+)\}|\(\?P<(\w+)>[^)]*\)")

PROMPT_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

ToolCallback = Callable[[dict[str, Any]], Any]
PermissionCheck = Callable[[dict[str, Any]], bool]


class CapabilityKind(str, Enum):
    """The three kinds of capability a server exposes."""

    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


# =============================================================================
# Invocation strategies
# =============================================================================


@dataclass(frozen=True)
class DirectCallback:
    """Invoke an in-process function with the call arguments."""

    fn: ToolCallback


@dataclass(frozen=True)
class RestAlias:
    """Forward the call to a REST route on the backend."""

    method: str
    route: str

    @property
    def path_params(self) -> list[str]:
        """Names of the placeholders in the route, in order."""
        return [m.group(1) or m.group(2) for m in ROUTE_PLACEHOLDER.finditer(self.route)]


Invocation = DirectCallback | RestAlias


# =============================================================================
# Capability definitions
# =============================================================================


@dataclass
class ToolDefinition:
    """A registered tool with its metadata and invocation strategy."""

    kind: ClassVar[CapabilityKind] = CapabilityKind.TOOL

    name: str
    description: str
    input_schema: dict[str, Any]
    invocation: Invocation
    annotations: dict[str, Any] | None = None
    permission_check: PermissionCheck | None = None
    requires_auth: bool = False
    enabled: bool = True

    @property
    def read_only(self) -> bool:
        return bool(self.annotations and self.annotations.get("readOnlyHint"))

    def to_mcp_tool(self) -> Tool:
        """Convert to MCP Tool model for protocol responses."""
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            annotations=ToolAnnotations(**self.annotations) if self.annotations else None,
        )


ResourceReader = Callable[[], Any]


@dataclass
class ResourceDefinition:
    """A registered resource, read through a reader function."""

    kind: ClassVar[CapabilityKind] = CapabilityKind.RESOURCE

    name: str
    uri: str
    description: str
    reader: ResourceReader
    mime_type: str = "application/json"
    enabled: bool = True

    def to_mcp_resource(self) -> Resource:
        return Resource(
            uri=self.uri,
            name=self.name,
            description=self.description,
            mimeType=self.mime_type,
        )


@dataclass
class PromptDefinition:
    """A registered prompt template.

    Each message is a dict with a `role` and a `text` template; `{{name}}`
    placeholders are filled from the prompt arguments.
    """

    kind: ClassVar[CapabilityKind] = CapabilityKind.PROMPT

    name: str
    description: str
    messages: list[dict[str, str]]
    arguments: list[PromptArgument] = field(default_factory=list)
    enabled: bool = True

    def to_mcp_prompt(self) -> Prompt:
        return Prompt(name=self.name, description=self.description, arguments=self.arguments)

    def render(self, arguments: dict[str, Any]) -> list[PromptMessage]:
        """Fill the templates, rejecting missing required arguments."""
        missing = [
            arg.name
            for arg in self.arguments
            if arg.required and arguments.get(arg.name) in (None, "")
        ]
        if missing:
            raise InvalidParamsError(
                f"Missing required prompt argument(s): {', '.join(missing)}"
            )

        def substitute(match: re.Match) -> str:
            value = arguments.get(match.group(1))
            return "" if value is None else str(value)

        return [
            PromptMessage(
                role=message.get("role", "user"),
                content=TextContent(text=PROMPT_PLACEHOLDER.sub(substitute, message["text"])),
            )
            for message in self.messages
        ]


Capability = ToolDefinition | ResourceDefinition | PromptDefinition


# =============================================================================
# Validation
# =============================================================================


def validate_name(name: Any) -> None:
    if not isinstance(name, str) or not NAME_PATTERN.match(name):
        raise SchemaError(
            f"Invalid capability name {name!r}: must be 1-64 characters of letters, digits, '_' or '-'"
        )


def validate_input_schema(schema: Any) -> None:
    """Check a tool input schema is a well-formed JSON Schema object."""
    if not isinstance(schema, dict):
        raise SchemaError("The input schema is required")
    if schema.get("type") != "object":
        raise SchemaError("The input schema must be an object type")

    properties = schema.get("properties", {})
    if not isinstance(properties, dict):
        raise SchemaError("The input schema properties must be an object")

    for prop_name, prop in properties.items():
        if not isinstance(prop, dict) or "type" not in prop:
            raise SchemaError(f"Property '{prop_name}' must have a type field")
        types = prop["type"] if isinstance(prop["type"], list) else [prop["type"]]
        for prop_type in types:
            if prop_type not in SCHEMA_TYPES:
                raise SchemaError(f"Property '{prop_name}' has invalid type '{prop_type}'")
        if "array" in types and "items" not in prop:
            raise SchemaError(f"Array property '{prop_name}' must have an items field")

    required = schema.get("required", [])
    if not isinstance(required, list):
        raise SchemaError("The required field must be an array")
    for required_prop in required:
        if required_prop not in properties:
            raise SchemaError(f"Required property '{required_prop}' does not exist in properties")


def schema_for_alias(alias: RestAlias) -> dict[str, Any]:
    """Build a minimal input schema from the route placeholders."""
    params = alias.path_params
    return {
        "type": "object",
        "properties": {name: {"type": "string", "description": f"Route parameter {name}"} for name in params},
        "required": params,
    }


# =============================================================================
# Enablement overrides
# =============================================================================


class CapabilityStates:
    """Enabled/disabled overrides, kept apart from the definitions."""

    def __init__(self, overrides: dict[str, dict[str, bool]] | None = None):
        self._overrides: dict[CapabilityKind, dict[str, bool]] = {}
        for kind, entries in (overrides or {}).items():
            for name, flag in entries.items():
                # "tools" and "tool" are both accepted as section names
                self.set_enabled(CapabilityKind(kind.rstrip("s")), name, flag)

    def set_enabled(self, kind: CapabilityKind, name: str, enabled: bool) -> None:
        self._overrides.setdefault(kind, {})[name] = bool(enabled)

    def is_enabled(self, capability: Capability) -> bool:
        flag = self._overrides.get(capability.kind, {}).get(capability.name)
        return capability.enabled if flag is None else flag


# =============================================================================
# Registry
# =============================================================================


class CapabilityRegistry:
    """Registry for MCP capabilities with plugin-style provider loading.

    Registration happens during bootstrap; `freeze()` then makes the
    registry read-only so request handlers can share it without locking.
    """

    def __init__(
        self,
        backend: "RestBackend | None" = None,
        states: CapabilityStates | None = None,
        logger: Any = None,
    ) -> None:
        self.backend = backend
        self.logger = logger or get_logger("woo_mcp.registry")
        self.states = states or CapabilityStates()
        self._capabilities: dict[CapabilityKind, dict[str, Capability]] = {
            kind: {} for kind in CapabilityKind
        }
        self._providers: set[str] = set()
        self._frozen = False

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, capability: Capability) -> None:
        """Add a capability; names are unique per kind."""
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {capability.name}: registry is frozen")
        validate_name(capability.name)
        entries = self._capabilities[capability.kind]
        if capability.name in entries:
            raise DuplicateNameError(
                f"{capability.kind.value.capitalize()} '{capability.name}' is already registered"
            )
        if isinstance(capability, ResourceDefinition) and self.get_resource_by_uri(capability.uri, include_disabled=True):
            raise DuplicateNameError(f"Resource URI '{capability.uri}' is already registered")
        entries[capability.name] = capability
        self.logger.debug("Registered capability", kind=capability.kind.value, name=capability.name)

    def register_tool(
        self,
        name: str,
        description: str,
        input_schema: dict[str, Any] | None = None,
        handler: ToolCallback | None = None,
        rest_alias: RestAlias | dict[str, str] | None = None,
        annotations: dict[str, Any] | None = None,
        permission_check: PermissionCheck | None = None,
        requires_auth: bool = False,
    ) -> ToolDefinition:
        """Register a tool backed by either a callback or a REST alias."""
        if not description:
            raise SchemaError(f"Tool '{name}': the description is required")
        if (handler is None) == (rest_alias is None):
            raise SchemaError(f"Tool '{name}': exactly one of handler or rest_alias is required")

        invocation: Invocation
        if rest_alias is not None:
            if isinstance(rest_alias, dict):
                rest_alias = RestAlias(
                    method=str(rest_alias.get("method", "")).upper(),
                    route=rest_alias.get("route", ""),
                )
            if not rest_alias.route:
                raise SchemaError(f"Tool '{name}': the route is required")
            if rest_alias.method not in HTTP_METHODS:
                raise SchemaError(
                    f"Tool '{name}': the method must be one of {', '.join(HTTP_METHODS)}"
                )
            invocation = rest_alias
            if input_schema is None:
                input_schema = schema_for_alias(rest_alias)
        else:
            if not callable(handler):
                raise SchemaError(f"Tool '{name}': the handler must be callable")
            invocation = DirectCallback(handler)

        if permission_check is not None and not callable(permission_check):
            raise SchemaError(f"Tool '{name}': the permission check must be callable")

        validate_input_schema(input_schema)
        tool = ToolDefinition(
            name=name,
            description=description,
            input_schema=input_schema,
            invocation=invocation,
            annotations=annotations,
            permission_check=permission_check,
            requires_auth=requires_auth,
        )
        self.register(tool)
        return tool

    def register_resource(
        self,
        name: str,
        uri: str,
        description: str,
        reader: ResourceReader,
        mime_type: str = "application/json",
    ) -> ResourceDefinition:
        if not uri:
            raise SchemaError(f"Resource '{name}': the uri is required")
        if not callable(reader):
            raise SchemaError(f"Resource '{name}': the reader must be callable")
        resource = ResourceDefinition(
            name=name, uri=uri, description=description, reader=reader, mime_type=mime_type
        )
        self.register(resource)
        return resource

    def register_prompt(
        self,
        name: str,
        description: str,
        messages: list[dict[str, str]],
        arguments: list[PromptArgument | dict[str, Any]] | None = None,
    ) -> PromptDefinition:
        if not messages:
            raise SchemaError(f"Prompt '{name}': at least one message is required")
        prompt = PromptDefinition(
            name=name,
            description=description,
            messages=messages,
            arguments=[
                arg if isinstance(arg, PromptArgument) else PromptArgument(**arg)
                for arg in (arguments or [])
            ],
        )
        self.register(prompt)
        return prompt

    def freeze(self) -> None:
        self._frozen = True
        self.logger.info(
            "Capability registry frozen",
            tools=self.tool_count,
            resources=self.resource_count,
            prompts=self.prompt_count,
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def capabilities(self, kind: CapabilityKind) -> list[Capability]:
        """Enabled capabilities of a kind, in registration order."""
        return [c for c in self._capabilities[kind].values() if self.states.is_enabled(c)]

    def get(self, kind: CapabilityKind, name: str) -> Capability:
        """Look up an enabled capability; disabled ones are reported as missing."""
        capability = self._capabilities[kind].get(name)
        if capability is None or not self.states.is_enabled(capability):
            raise NotFoundError(kind.value, name)
        return capability

    def get_resource_by_uri(self, uri: str, include_disabled: bool = False) -> ResourceDefinition | None:
        for resource in self._capabilities[CapabilityKind.RESOURCE].values():
            if resource.uri == uri and (include_disabled or self.states.is_enabled(resource)):
                return resource  # type: ignore[return-value]
        return None

    def list_tools(self) -> list[Tool]:
        """List all enabled tools as MCP Tool models."""
        return [tool.to_mcp_tool() for tool in self.capabilities(CapabilityKind.TOOL)]  # type: ignore[union-attr]

    def list_resources(self) -> list[Resource]:
        return [r.to_mcp_resource() for r in self.capabilities(CapabilityKind.RESOURCE)]  # type: ignore[union-attr]

    def list_prompts(self) -> list[Prompt]:
        return [p.to_mcp_prompt() for p in self.capabilities(CapabilityKind.PROMPT)]  # type: ignore[union-attr]

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        principal: "Principal | None" = None,
    ) -> Any:
        """Run a tool and return its raw result.

        Raises McpError subclasses; unexpected exceptions from callbacks are
        wrapped as tool execution errors.
        """
        tool: ToolDefinition = self.get(CapabilityKind.TOOL, name)  # type: ignore[assignment]

        if principal is not None and principal.read_only and (tool.requires_auth or not tool.read_only):
            raise PermissionDeniedError(f"Authentication required to use tool: {name}")
        if tool.permission_check is not None:
            try:
                allowed = tool.permission_check(arguments)
            except Exception:
                self.logger.exception("Permission check failed", tool=name)
                allowed = False
            if not allowed:
                raise PermissionDeniedError(f"Permission denied for tool: {name}")

        try:
            match tool.invocation:
                case RestAlias(method=method, route=route):
                    if self.backend is None:
                        raise InternalError(f"No REST backend configured for tool: {name}")
                    return await self.backend.call(method, route, arguments)
                case DirectCallback(fn=fn):
                    result = fn(arguments)
                    if inspect.isawaitable(result):
                        result = await result
                    return result
        except McpError:
            raise
        except Exception as e:
            self.logger.exception("Error executing tool", tool=name)
            raise ToolExecutionError(f"Error executing tool {name}: {e}") from e

    async def read_resource(self, uri: str) -> ResourceContents:
        resource = self.get_resource_by_uri(uri)
        if resource is None:
            raise NotFoundError("resource", uri)

        try:
            data = resource.reader()
            if inspect.isawaitable(data):
                data = await data
        except McpError:
            raise
        except Exception as e:
            self.logger.exception("Error reading resource", uri=uri)
            raise InternalError(f"Error reading resource {uri}: {e}") from e

        text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False, default=str)
        return ResourceContents(uri=resource.uri, mimeType=resource.mime_type, text=text)

    def render_prompt(self, name: str, arguments: dict[str, Any]) -> tuple[PromptDefinition, list[PromptMessage]]:
        prompt: PromptDefinition = self.get(CapabilityKind.PROMPT, name)  # type: ignore[assignment]
        return prompt, prompt.render(arguments)

    # -------------------------------------------------------------------------
    # Providers
    # -------------------------------------------------------------------------

    def load_provider(self, provider_name: str) -> bool:
        """
        Load a provider module and register its capabilities.

        Providers are expected to be in woo_mcp/tools/<provider_name>/
        and have a register_tools(registry) function. A provider that
        registers an invalid or duplicate capability aborts startup.
        """
        if provider_name in self._providers:
            self.logger.debug("Provider already loaded", provider=provider_name)
            return True

        module_path = f"woo_mcp.tools.{provider_name}.tools"
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            self.logger.warning("Could not import provider", provider=provider_name, error=str(e))
            return False

        if not hasattr(module, "register_tools"):
            self.logger.warning("Provider has no register_tools function", provider=provider_name)
            return False

        try:
            module.register_tools(self)
        except ConfigurationError:
            self.logger.error("Provider registered an invalid capability", provider=provider_name)
            raise
        self._providers.add(provider_name)
        self.logger.info("Loaded provider", provider=provider_name)
        return True

    def load_providers(self, provider_names: list[str]) -> dict[str, bool]:
        """Load multiple providers, returning success status for each."""
        results = {}
        for name in provider_names:
            results[name] = self.load_provider(name)
        return results

    @property
    def tool_count(self) -> int:
        return len(self.capabilities(CapabilityKind.TOOL))

    @property
    def resource_count(self) -> int:
        return len(self.capabilities(CapabilityKind.RESOURCE))

    @property
    def prompt_count(self) -> int:
        return len(self.capabilities(CapabilityKind.PROMPT))

    @property
    def provider_count(self) -> int:
        """Return the number of loaded providers."""
        return len(self._providers)
