"""REST backend client."""

from woo_mcp.backend.client import RestBackend, build_request

__all__ = ["RestBackend", "build_request"]
