"""woo-mcp CLI entrypoint."""

import asyncio
import sys

import click

from woo_mcp import __version__
from woo_mcp.config.loader import get_settings


@click.group()
@click.version_option(version=__version__, prog_name="woo-mcp")
def main() -> None:
    """woo-mcp: Model Context Protocol server for a WooCommerce store."""


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to WOO_MCP_HOST).")
@click.option("--port", type=int, default=None, help="Port (defaults to WOO_MCP_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Serve the streamable HTTP transport with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "woo_mcp.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.option("--proxy", "proxy_url", default=None, help="Forward messages to this remote MCP endpoint.")
@click.option("--token", default=None, help="Bearer token for the remote endpoint.")
@click.option("--user", "username", default=None, help="Run embedded calls as this configured user.")
def stdio(proxy_url: str | None, token: str | None, username: str | None) -> None:
    """Speak MCP over stdin/stdout, one JSON message per line."""
    from woo_mcp.mcp.handlers import RequestContext
    from woo_mcp.mcp.transport_stdio import LocalHandler, ProxyHandler, StdioTransport
    from woo_mcp.security.users import Principal
    from woo_mcp.utils.logging import setup_logging

    settings = get_settings()
    # stdout carries protocol messages only
    setup_logging(settings.log_level, settings.log_format, stream=sys.stderr)

    proxy_url = proxy_url or settings.proxy_url
    if proxy_url:
        handler = ProxyHandler(
            proxy_url,
            token=token or settings.proxy_token or None,
            timeout=settings.backend_timeout,
        )
        asyncio.run(_run_stdio(StdioTransport(handler), handler))
        return

    from woo_mcp.context import bootstrap

    context = bootstrap(settings)
    principal = Principal.anonymous()
    if username:
        user = context.users.get_by_username(username)
        if user is None:
            click.echo(f"Unknown user: {username}", err=True)
            sys.exit(1)
        principal = Principal.for_user(user, via="stdio")

    handler = LocalHandler(context.processor, RequestContext(principal=principal))
    asyncio.run(_run_stdio(StdioTransport(handler), context))


async def _run_stdio(transport, closeable) -> None:
    try:
        await transport.run()
    finally:
        await closeable.aclose()


if __name__ == "__main__":
    main()
