"""Security modules: users, JWT tokens, authentication middleware and token routes."""

from woo_mcp.security.auth import AuthMiddleware, Authenticator, extract_bearer_token
from woo_mcp.security.tokens import IssuedToken, TokenManager, TokenRecord
from woo_mcp.security.users import Principal, User, UserDirectory

__all__ = [
    "AuthMiddleware",
    "Authenticator",
    "extract_bearer_token",
    "IssuedToken",
    "TokenManager",
    "TokenRecord",
    "Principal",
    "User",
    "UserDirectory",
]
