"""Token exchange endpoints: issue, revoke and list bearer tokens."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from woo_mcp.mcp.errors import (
    AuthenticationError,
    InvalidExpirationError,
    NotFoundError,
    TokenLimitExceededError,
)
from woo_mcp.security.auth import error_json
from woo_mcp.security.tokens import TokenRecord
from woo_mcp.security.users import Principal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tokens"])


async def read_json_body(request: Request) -> dict[str, Any]:
    """Body as a dict; empty or non-object bodies count as no fields."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return body if isinstance(body, dict) else {}


def token_info(request: Request, record: TokenRecord) -> dict[str, Any]:
    context = request.app.state.context
    user = context.users.get(record.user_id)
    now = context.tokens.now()
    return {
        "jti": record.jti,
        "user": user.summary() if user else {"id": record.user_id},
        "issued_at": record.issued_at,
        "expires_at": record.expires_at,
        "revoked": record.revoked,
        "is_expired": record.is_expired(now),
    }


def require_admin(request: Request) -> JSONResponse | None:
    """Return an error response unless the caller is an authenticated admin."""
    principal: Principal | None = getattr(request.state, "principal", None)
    if principal is None or not principal.authenticated:
        return error_json(AuthenticationError.http_status, "unauthorized", AuthenticationError.public_message)
    if not principal.is_admin:
        return error_json(403, "forbidden", "Administrator access required")
    return None


@router.post("/token")
async def issue_token(request: Request) -> JSONResponse:
    """
    Exchange credentials for a bearer token.

    Accepts `username`/`password` in the JSON body, or trusts a caller that
    already authenticated (Basic or an existing bearer token). `expires_in`
    is optional and defaults to the configured token lifetime.
    """
    context = request.app.state.context
    body = await read_json_body(request)

    user = None
    if body.get("username") is not None:
        user = context.users.authenticate(str(body.get("username")), str(body.get("password", "")))
        if user is None:
            logger.warning(f"Failed token request for user {body.get('username')!r}")
            return error_json(AuthenticationError.http_status, "invalid_grant", "Invalid username or password")
    else:
        principal: Principal | None = getattr(request.state, "principal", None)
        if principal is not None and principal.authenticated:
            user = context.users.get(principal.user_id)
        if user is None:
            return error_json(AuthenticationError.http_status, "invalid_grant", AuthenticationError.public_message)

    expires_in = body.get("expires_in", context.settings.token_default_ttl)
    if isinstance(expires_in, str) and expires_in.strip().isdigit():
        expires_in = int(expires_in)

    try:
        issued = context.tokens.issue(user.id, expires_in)
    except InvalidExpirationError as e:
        return error_json(e.http_status, "invalid_expiration", e.message)
    except TokenLimitExceededError as e:
        return error_json(e.http_status, "token_limit_exceeded", e.message)

    return JSONResponse(
        content={
            "access_token": issued.access_token,
            "token_type": issued.token_type,
            "expires_in": issued.expires_in,
            "expires_at": issued.expires_at,
            "jti": issued.jti,
            "user": user.summary(),
        }
    )


@router.post("/revoke")
async def revoke_token(request: Request) -> JSONResponse:
    """Revoke a token by jti (admin only)."""
    denied = require_admin(request)
    if denied is not None:
        return denied

    body = await read_json_body(request)
    jti = body.get("jti")
    if not isinstance(jti, str) or not jti:
        return error_json(400, "invalid_request", "jti is required")

    try:
        request.app.state.context.tokens.revoke(jti)
    except NotFoundError as e:
        return error_json(e.http_status, "not_found", e.message)

    return JSONResponse(content={"message": "Token revoked successfully.", "jti": jti})


@router.get("/tokens")
async def list_tokens(request: Request) -> JSONResponse:
    """List live tokens, optionally for one user (admin only)."""
    denied = require_admin(request)
    if denied is not None:
        return denied

    user_id: int | None = None
    raw_user_id = request.query_params.get("user_id")
    if raw_user_id:
        try:
            user_id = int(raw_user_id)
        except ValueError:
            return error_json(400, "invalid_request", "user_id must be an integer")

    records = request.app.state.context.tokens.list(user_id)
    return JSONResponse(content={"tokens": [token_info(request, r) for r in records]})
