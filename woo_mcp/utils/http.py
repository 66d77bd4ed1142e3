"""HTTP client utilities with retry and timeout handling."""

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from woo_mcp.config.loader import Settings


def create_http_client(
    settings: Settings,
    timeout: float | None = None,
    base_url: str | None = None,
    auth: tuple[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an async HTTP client with sensible defaults.

    Args:
        settings: Application settings (user agent, default timeout).
        timeout: Request timeout in seconds. Uses the backend timeout if None.
        base_url: Optional base URL for all requests.
        auth: Optional basic auth credentials.
        transport: Optional transport override (tests use httpx.MockTransport).

    Returns:
        Configured httpx.AsyncClient instance.
    """
    if timeout is None:
        timeout = float(settings.backend_timeout)

    return httpx.AsyncClient(
        base_url=base_url or "",
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        auth=auth,
        transport=transport,
        headers={
            "User-Agent": f"{settings.server_name}/{settings.server_version}",
        },
        limits=httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
            keepalive_expiry=30.0,
        ),
    )


# Only connection failures are retried; a timed-out request already used
# its whole budget.
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(httpx.ConnectError),
    reraise=True,
)
