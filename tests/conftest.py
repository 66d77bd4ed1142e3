"""Pytest configuration and fixtures."""

import base64
import copy
import hashlib
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from woo_mcp.config.loader import Settings
from woo_mcp.context import AppContext, bootstrap
from woo_mcp.main import create_app
from woo_mcp.mcp.registry import CapabilityRegistry
from woo_mcp.tools.base import object_schema, read_only, string_prop

JWT_SECRET = "test-secret-key-" + "0123456789abcdef" * 4
BACKEND_URL = "http://store.test/wp-json"

SERVER_CONFIG: dict[str, Any] = {
    "enabled_providers": ["woocommerce", "wordpress", "search"],
    "capabilities": {"tools": {"wp_delete_post": False}},
    "users": [
        {"id": 1, "username": "admin", "display_name": "Store Admin", "password": "admin-secret", "admin": True},
        {
            "id": 2,
            "username": "shopper",
            "password": "sha256:" + hashlib.sha256(b"shopper-secret").hexdigest(),
        },
    ],
    "store": {"name": "Test Store", "url": "http://store.test"},
}

STORE_INDEX = {
    "name": "Test Store",
    "description": "Just another WooCommerce store",
    "url": "http://store.test",
    "home": "http://store.test",
    "gmt_offset": 0,
    "timezone_string": "UTC",
    "namespaces": ["wp/v2", "wc/v3"],
    "routes": {},
}


class FakeClock:
    """Settable clock for token and session expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeStore:
    """Canned WordPress / WooCommerce REST responses served through httpx.MockTransport."""

    PREFIX = "/wp-json"

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.add("GET", "/", STORE_INDEX)

    def add(self, method: str, route: str, body: Any = None, status: int = 200) -> None:
        """Answer `method route` with a JSON body, or with a callable taking the request."""
        self.routes[(method.upper(), route)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = request.url.path.removeprefix(self.PREFIX) or "/"
        entry = self.routes.get((request.method, route))
        if entry is None:
            return httpx.Response(
                404,
                json={"code": "rest_no_route", "message": "No route was found matching the URL and request method."},
            )
        status, body = entry
        if callable(body):
            return body(request)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "jwt_secret_key": JWT_SECRET,
        "auth_required": False,
        "backend_url": BACKEND_URL,
        "sse_heartbeat_interval": 0.01,
        "sse_max_duration": 0.05,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def register_test_tools(registry: CapabilityRegistry, calls: list[dict[str, Any]]) -> None:
    """In-process tools used across the protocol tests."""

    registry.register_tool(
        name="echo",
        description="Echo the message back",
        input_schema={
            "type": "object",
            "properties": {"msg": {"type": "string"}},
            "required": ["msg"],
        },
        handler=lambda args: {"echo": args["msg"]},
        annotations=read_only("Echo"),
    )

    def guarded(args: dict[str, Any]) -> dict[str, Any]:
        calls.append(args)
        return {"ok": True}

    registry.register_tool(
        name="guarded",
        description="Only runs when allow is true",
        input_schema=object_schema({"allow": {"type": "boolean"}}),
        handler=guarded,
        annotations=read_only("Guarded"),
        permission_check=lambda args: args.get("allow") is True,
    )

    def broken(args: dict[str, Any]) -> None:
        raise RuntimeError("boom")

    registry.register_tool(
        name="broken",
        description="Always fails",
        input_schema=object_schema({"msg": string_prop("Ignored")}),
        handler=broken,
        annotations=read_only("Broken"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeStore:
    """The REST backend every context talks to."""
    return FakeStore()


@pytest.fixture
def tool_calls() -> list[dict[str, Any]]:
    """Arguments each call of the `guarded` tool actually ran with."""
    return []


@pytest.fixture
def make_context(store: FakeStore, clock: FakeClock, tool_calls) -> Callable[..., AppContext]:
    """Factory for application contexts with setting overrides."""
    def _make(config: dict[str, Any] | None = None, **overrides: Any) -> AppContext:
        return bootstrap(
            make_settings(**overrides),
            config=copy.deepcopy(config if config is not None else SERVER_CONFIG),
            backend_transport=store.transport,
            clock=clock,
            register=lambda registry: register_test_tools(registry, tool_calls),
        )
    return _make


@pytest.fixture
def context(make_context) -> AppContext:
    """Context with authentication optional (anonymous callers are read-only)."""
    return make_context()


@pytest.fixture
def secure_context(make_context) -> AppContext:
    """Context that rejects unauthenticated MCP requests."""
    return make_context(auth_required=True)


@pytest.fixture
def settings(context: AppContext) -> Settings:
    """Get application settings."""
    return context.settings


@pytest.fixture
def registry(context: AppContext) -> CapabilityRegistry:
    return context.registry


@pytest.fixture
def client(context: AppContext):
    """Synchronous test client for FastAPI app."""
    return TestClient(create_app(context))


@pytest.fixture
def secure_client(secure_context: AppContext):
    return TestClient(create_app(secure_context))


@pytest.fixture
async def async_client(context: AppContext):
    """Async test client for FastAPI app."""
    transport = ASGITransport(app=create_app(context))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def basic_auth():
    """Authorization header factory for HTTP Basic credentials."""
    def _header(username: str, password: str) -> dict[str, str]:
        encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}
    return _header


@pytest.fixture
def bearer():
    def _header(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
def sample_jsonrpc_request():
    """Sample JSON-RPC request factory."""
    def _make_request(method: str, params: dict = None, id: int = 1):
        return {
            "jsonrpc": "2.0",
            "id": id,
            "method": method,
            "params": params or {},
        }
    return _make_request
