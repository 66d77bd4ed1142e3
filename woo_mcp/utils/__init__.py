"""Utility modules: logging, HTTP client."""

from woo_mcp.utils.http import create_http_client, http_retry
from woo_mcp.utils.logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "create_http_client",
    "http_retry",
]
