"""FastAPI MCP Server - Main application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from woo_mcp.context import AppContext, bootstrap
from woo_mcp.mcp.errors import PermissionDeniedError, error_response
from woo_mcp.mcp.handlers import PROTOCOL_VERSION
from woo_mcp.mcp.transport_streamable import PROTOCOL_HEADER, SESSION_HEADER, json_response
from woo_mcp.security.auth import AuthMiddleware
from woo_mcp.security.routes import router as token_router
from woo_mcp.utils.logging import get_logger, set_request_id, setup_logging


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the FastAPI application around an application context."""
    if context is None:
        context = bootstrap()
    settings = context.settings
    endpoint = settings.mcp_endpoint

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        # Startup
        setup_logging(settings.log_level, settings.log_format)
        log = get_logger("startup")
        log.info(
            "Starting MCP server",
            server_name=settings.server_name,
            version=settings.server_version,
            auth_required=settings.auth_required,
            endpoint=endpoint,
        )

        # Start session cleanup task
        await context.sessions.start_cleanup_task()

        yield

        # Shutdown
        log.info("Shutting down MCP server")
        context.sessions.stop_cleanup_task()
        await context.aclose()

    app = FastAPI(
        title="WooCommerce MCP Server",
        description="Model Context Protocol server for a WooCommerce store",
        version=settings.server_version,
        lifespan=lifespan,
    )
    app.state.context = context

    # Add middleware in reverse order (last added = first to process incoming requests)
    app.add_middleware(AuthMiddleware, protected_paths=[endpoint])

    # CORS must be added LAST so it processes incoming requests FIRST (handles OPTIONS preflight)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for MCP compatibility
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS", "HEAD"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER, PROTOCOL_HEADER],
        max_age=600,
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # =========================================================================
    # Health and Info Endpoints
    # =========================================================================

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {
            "status": "ok",
            "mcp_enabled": settings.mcp_enabled,
            "tools": context.registry.tool_count,
            "sessions": context.sessions.session_count,
        }

    @app.get("/")
    async def root() -> dict:
        """Root endpoint with server info."""
        return {
            "name": settings.server_name,
            "version": settings.server_version,
            "description": "MCP server for a WooCommerce store",
            "endpoints": {
                "health": "/health",
                "mcp": endpoint,
                "token": "/token",
                "revoke": "/revoke",
                "tokens": "/tokens",
                "docs": "/docs",
            },
            "tools_available": context.registry.tool_count,
            "resources_available": context.registry.resource_count,
            "prompts_available": context.registry.prompt_count,
            "auth_required": settings.auth_required,
            "mcp_protocol_version": PROTOCOL_VERSION,
        }

    # =========================================================================
    # MCP Endpoint
    # =========================================================================

    transport = context.transport

    async def mcp_disabled(request: Request) -> Response:
        error = PermissionDeniedError("MCP functionality is currently disabled.")
        return json_response(error_response(None, error.to_error_data()), error.http_status)

    if settings.mcp_enabled:
        app.add_api_route(endpoint, transport.handle_post, methods=["POST"], include_in_schema=False)
        app.add_api_route(endpoint, transport.handle_get, methods=["GET"], include_in_schema=False)
        app.add_api_route(endpoint, transport.handle_head, methods=["HEAD"], include_in_schema=False)
        app.add_api_route(endpoint, transport.handle_delete, methods=["DELETE"], include_in_schema=False)
    else:
        app.add_api_route(endpoint, mcp_disabled, methods=["GET", "POST"], include_in_schema=False)

    app.include_router(token_router)

    return app


if __name__ == "__main__":
    from woo_mcp.cli import serve

    serve()
