"""Decorator and schema helpers shared by the tool providers."""

from typing import Any, Callable

from woo_mcp.mcp.registry import CapabilityRegistry


def read_only(title: str, **hints: Any) -> dict[str, Any]:
    """Annotations for a tool that only reads store data."""
    return {"title": title, "readOnlyHint": True, "openWorldHint": False, **hints}


def object_schema(
    properties: dict[str, dict[str, Any]] | None = None,
    required: list[str] | None = None,
) -> dict[str, Any]:
    return {"type": "object", "properties": properties or {}, "required": required or []}


def string_prop(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def integer_prop(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "integer", "description": description, **extra}


def boolean_prop(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "boolean", "description": description, **extra}


# Common pagination arguments accepted by WordPress collection routes
PAGINATION = {
    "per_page": integer_prop("Items per page (default: 10)", minimum=1, maximum=100),
    "page": integer_prop("Page number (default: 1)", minimum=1),
}


def tool(
    name: str,
    description: str,
    input_schema: dict[str, Any],
    annotations: dict[str, Any] | None = None,
    requires_auth: bool = False,
) -> Callable[[Callable], Callable]:
    """
    Decorator to mark a function as an MCP tool.

    Usage:
        @tool(
            name="store-ping",
            description="Returns pong",
            input_schema={"type": "object", "properties": {}}
        )
        async def ping(arguments: dict) -> dict:
            return {"pong": True}

    The decorated function gets _tool_metadata attached; methods keep it
    when bound, so a provider can decorate methods of a service object.
    """
    def decorator(func: Callable) -> Callable:
        func._tool_metadata = {  # type: ignore[attr-defined]
            "name": name,
            "description": description,
            "input_schema": input_schema,
            "annotations": annotations,
            "requires_auth": requires_auth,
        }
        return func

    return decorator


def get_tool_metadata(func: Callable) -> dict[str, Any] | None:
    """Get tool metadata from a decorated function."""
    return getattr(func, "_tool_metadata", None)


def register_decorated(registry: CapabilityRegistry, *funcs: Callable) -> None:
    """Register decorated functions as direct-callback tools."""
    for func in funcs:
        metadata = get_tool_metadata(func)
        if metadata is None:
            raise ValueError(f"{func!r} is not decorated with @tool")
        registry.register_tool(handler=func, **metadata)
