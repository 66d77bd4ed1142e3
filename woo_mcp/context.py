"""Application context: every long-lived component, built once at startup."""

import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from woo_mcp.backend.client import RestBackend
from woo_mcp.config.loader import (
    Settings,
    get_capability_overrides,
    get_enabled_providers,
    get_settings,
    load_server_config,
)
from woo_mcp.mcp.handlers import MCPHandlers
from woo_mcp.mcp.jsonrpc import JsonRpcProcessor
from woo_mcp.mcp.registry import CapabilityRegistry, CapabilityStates
from woo_mcp.mcp.transport_sse import SessionManager
from woo_mcp.mcp.transport_streamable import StreamableHttpTransport
from woo_mcp.security.auth import Authenticator
from woo_mcp.security.tokens import TokenManager
from woo_mcp.security.users import UserDirectory
from woo_mcp.utils.logging import get_logger

# Providers registered before the configured ones
BUILTIN_PROVIDERS = ["store"]


@dataclass
class AppContext:
    """Explicit handles to the shared components, passed to transports and routes."""

    settings: Settings
    config: dict[str, Any]
    backend: RestBackend
    registry: CapabilityRegistry
    users: UserDirectory
    tokens: TokenManager
    authenticator: Authenticator
    sessions: SessionManager
    handlers: MCPHandlers
    processor: JsonRpcProcessor
    transport: StreamableHttpTransport

    async def aclose(self) -> None:
        await self.backend.aclose()


def build_registry(
    settings: Settings,
    config: dict[str, Any],
    backend: RestBackend,
    register: Callable[[CapabilityRegistry], None] | None = None,
) -> CapabilityRegistry:
    """
    Build and freeze the capability registry.

    Order: built-in providers, configured providers, then the optional
    `register` hook. Any invalid or duplicate capability aborts startup.
    """
    log = get_logger("startup")
    registry = CapabilityRegistry(
        backend=backend,
        states=CapabilityStates(get_capability_overrides(config)),
    )

    if settings.mcp_enabled:
        providers = BUILTIN_PROVIDERS + [
            name for name in get_enabled_providers(config) if name not in BUILTIN_PROVIDERS
        ]
        log.info("Loading providers", providers=providers)
        results = registry.load_providers(providers)
        for provider, success in results.items():
            if not success:
                log.warning("Failed to load provider", provider=provider)
        if register is not None:
            register(registry)

    registry.freeze()
    return registry


def bootstrap(
    settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    backend_transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.time,
    register: Callable[[CapabilityRegistry], None] | None = None,
) -> AppContext:
    """Wire up the application from settings and the YAML server config."""
    settings = settings or get_settings()
    if config is None:
        config = load_server_config(settings.config_file or None)

    backend = RestBackend(settings, transport=backend_transport)
    registry = build_registry(settings, config, backend, register)
    users = UserDirectory.from_config(config)
    tokens = TokenManager.from_settings(settings, users, clock=clock)
    authenticator = Authenticator(tokens, users, auth_required=settings.auth_required)
    sessions = SessionManager(timeout=settings.session_timeout, clock=clock)

    handlers = MCPHandlers(
        registry,
        server_name=settings.server_name,
        server_version=settings.server_version,
        store_info=config.get("store") or {},
    )
    processor = JsonRpcProcessor(handlers)
    transport = StreamableHttpTransport(
        processor,
        sessions,
        endpoint=settings.mcp_endpoint,
        heartbeat_interval=settings.sse_heartbeat_interval,
        max_duration=settings.sse_max_duration,
    )

    get_logger("startup").info(
        "Application context ready",
        tool_count=registry.tool_count,
        resource_count=registry.resource_count,
        prompt_count=registry.prompt_count,
        provider_count=registry.provider_count,
        auth_required=settings.auth_required,
        users=len(users),
    )

    return AppContext(
        settings=settings,
        config=config,
        backend=backend,
        registry=registry,
        users=users,
        tokens=tokens,
        authenticator=authenticator,
        sessions=sessions,
        handlers=handlers,
        processor=processor,
        transport=transport,
    )
