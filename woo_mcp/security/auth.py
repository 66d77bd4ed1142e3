"""Authentication middleware and utilities."""

import base64
import binascii
import logging
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from woo_mcp.mcp.errors import AuthenticationError, error_response
from woo_mcp.mcp.jsonrpc import encode_message
from woo_mcp.security.tokens import TokenManager
from woo_mcp.security.users import Principal, UserDirectory

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from Authorization header."""
    if authorization is None:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def extract_basic_credentials(authorization: str | None) -> tuple[str, str] | None:
    """Extract (username, password) from a Basic Authorization header."""
    if authorization is None:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "basic":
        return None

    try:
        decoded = base64.b64decode(parts[1], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class Authenticator:
    """Resolves the Authorization header of a request to a principal.

    The policy is fixed when the authenticator is built: with
    `auth_required` off, callers without valid credentials run as the
    anonymous read-only principal.
    """

    def __init__(self, tokens: TokenManager, users: UserDirectory, auth_required: bool):
        self.tokens = tokens
        self.users = users
        self.auth_required = auth_required

    def resolve(self, authorization: str | None) -> Principal:
        """
        Authenticate a request.

        Raises:
            AuthenticationError: No acceptable credential was presented.
        """
        bearer = extract_bearer_token(authorization)
        if bearer is not None:
            return self.tokens.validate(bearer)

        basic = extract_basic_credentials(authorization)
        if basic is not None:
            user = self.users.authenticate(*basic)
            if user is None:
                raise AuthenticationError("Invalid username or password")
            return Principal.for_user(user, via="basic")

        raise AuthenticationError("No credentials provided")

    def authenticate(self, authorization: str | None) -> Principal:
        """Apply the server policy on top of `resolve`."""
        try:
            return self.resolve(authorization)
        except AuthenticationError as e:
            if self.auth_required:
                raise
            if authorization:
                logger.info(f"Ignoring rejected credentials ({e.reason}); continuing as anonymous")
            return Principal.anonymous()


def authentication_failed_response() -> Response:
    """403 with the JSON-RPC authentication error; identical for every cause."""
    body = error_response(None, AuthenticationError().to_error_data())
    return Response(
        content=encode_message(body),
        status_code=AuthenticationError.http_status,
        media_type="application/json",
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the caller and enforce authentication on the MCP endpoint.

    Every request gets `request.state.principal` (None when resolution
    failed on a public path); the token routes check it themselves.
    """

    # Paths that are always public (no auth required)
    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
        "/redoc",
    ]

    def __init__(self, app, protected_paths: list[str] | None = None):
        super().__init__(app)
        self.protected_paths = protected_paths or ["/mcp"]

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        path = request.url.path
        request.state.principal = None

        if request.method == "OPTIONS" or path in self.PUBLIC_PATHS:
            return await call_next(request)

        authenticator: Authenticator = request.app.state.context.authenticator
        authorization = request.headers.get("Authorization")

        try:
            request.state.principal = authenticator.authenticate(authorization)
        except AuthenticationError as e:
            if any(path.startswith(p) for p in self.protected_paths):
                logger.warning(f"Unauthorized access attempt to {path}: {e.reason}")
                return authentication_failed_response()
            if authorization:
                # Token routes decide for themselves; a bad credential is still no credential
                logger.info(f"Rejected credentials on {path}: {e.reason}")

        return await call_next(request)


def error_json(status_code: int, error: str, message: str) -> JSONResponse:
    """REST-style error body used by the token routes."""
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})
