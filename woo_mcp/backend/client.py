"""Async client for the WordPress / WooCommerce REST API."""

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from woo_mcp.config.loader import Settings, get_settings
from woo_mcp.mcp.errors import (
    BackendUnavailableError,
    InvalidParamsError,
    ToolExecutionError,
)
from woo_mcp.mcp.registry import ROUTE_PLACEHOLDER
from woo_mcp.utils.http import create_http_client, http_retry

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT", "PATCH")


def format_param(value: Any) -> str:
    """Render an argument for a URL: lists and dicts as JSON, bools as true/false."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def format_query_value(value: Any) -> str:
    """Render a query argument; lists become the comma-separated form WordPress parses."""
    if isinstance(value, (list, tuple)):
        return ",".join(format_param(item) for item in value)
    return format_param(value)


def build_request(
    method: str, route: str, arguments: dict[str, Any]
) -> tuple[str, dict[str, str], dict[str, Any] | None]:
    """
    Split tool arguments into a concrete path, query params and JSON body.

    Route placeholders consume their arguments; the rest become query
    params for GET/DELETE and the JSON body for POST/PUT/PATCH.

    Returns:
        (path, query params, body or None)
    """
    remaining = dict(arguments)

    def substitute(match: Any) -> str:
        name = match.group(1) or match.group(2)
        if remaining.get(name) is None:
            raise InvalidParamsError(f"Missing required route parameter: {name}")
        return quote(format_param(remaining.pop(name)), safe="")

    path = ROUTE_PLACEHOLDER.sub(substitute, route)

    if method.upper() in BODY_METHODS:
        return path, {}, remaining
    return path, {key: format_query_value(value) for key, value in remaining.items()}, None


def backend_error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a WordPress error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"


class RestBackend:
    """Client for the REST routes that tool aliases forward to."""

    def __init__(
        self,
        settings: Settings | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.backend_url).rstrip("/")
        self._client = create_http_client(
            self.settings,
            base_url=self.base_url,
            auth=self.settings.backend_auth,
            transport=transport,
        )

    @http_retry
    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        return await self._client.request(method, path, params=params or None, json=body)

    async def call(self, method: str, route: str, arguments: dict[str, Any]) -> Any:
        """
        Call a REST route with tool arguments.

        Raises:
            InvalidParamsError: A route placeholder has no argument.
            ToolExecutionError: The backend answered with an error status.
            BackendUnavailableError: Timeout or connection failure.
        """
        method = method.upper()
        path, params, body = build_request(method, route, arguments)
        logger.debug(f"Backend {method} {path}")

        try:
            response = await self._send(method, path, params, body)
        except httpx.TimeoutException as e:
            logger.warning(f"Backend timeout: {method} {path}")
            raise BackendUnavailableError(f"Backend request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            logger.warning(f"Backend unavailable: {method} {path}: {e}")
            raise BackendUnavailableError(f"Backend unavailable: {e}") from e

        if response.status_code >= 400:
            message = backend_error_message(response)
            logger.info(f"Backend error {response.status_code} for {method} {path}: {message}")
            raise ToolExecutionError(message, data={"status": response.status_code})

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(self, route: str, params: dict[str, Any] | None = None) -> Any:
        """Convenience GET used by in-process tools."""
        return await self.call("GET", route, params or {})

    async def aclose(self) -> None:
        await self._client.aclose()
