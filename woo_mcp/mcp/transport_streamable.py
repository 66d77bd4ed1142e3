"""Streamable HTTP transport: one endpoint for POSTed JSON-RPC and GET streams."""

from typing import Any

from fastapi import Request, Response

from woo_mcp.mcp.errors import (
    INTERNAL_ERROR,
    InvalidRequestError,
    McpError,
    error_response,
    make_error_data,
)
from woo_mcp.mcp.handlers import RequestContext, negotiate_protocol_version
from woo_mcp.mcp.jsonrpc import JsonRpcProcessor, ReplyKind
from woo_mcp.mcp.models import encode_message
from woo_mcp.mcp.transport_sse import SessionManager, create_sse_response
from woo_mcp.utils.logging import get_logger, set_session_id

SESSION_HEADER = "Mcp-Session-Id"
PROTOCOL_HEADER = "MCP-Protocol-Version"


def json_response(body: Any, status_code: int, headers: dict[str, str] | None = None) -> Response:
    """Encode with the same compact encoder the STDIO transport uses."""
    return Response(
        content=encode_message(body) if body is not None else b"",
        status_code=status_code,
        media_type="application/json" if body is not None else None,
        headers=headers,
    )


class StreamableHttpTransport:
    """Adapts HTTP requests on the MCP endpoint to the JSON-RPC processor."""

    def __init__(
        self,
        processor: JsonRpcProcessor,
        sessions: SessionManager,
        endpoint: str = "/mcp",
        heartbeat_interval: float = 15.0,
        max_duration: float = 300.0,
        logger: Any = None,
    ):
        self.processor = processor
        self.sessions = sessions
        self.endpoint = endpoint
        self.heartbeat_interval = heartbeat_interval
        self.max_duration = max_duration
        self.logger = logger or get_logger("streamable")

    def _protocol_version(self, request: Request, session: Any = None) -> str:
        if session is not None and session.protocol_version:
            return session.protocol_version
        return negotiate_protocol_version(request.headers.get(PROTOCOL_HEADER))

    async def handle_post(self, request: Request) -> Response:
        """
        Handle a POSTed JSON-RPC message or batch.

        200 with a body, 202 with none, 400 for unparseable or malformed
        payloads, 500 if routing itself blew up.
        """
        content_type = request.headers.get("content-type")
        if content_type and "application/json" not in content_type.lower():
            error = InvalidRequestError("Invalid Request: Content-Type must be application/json")
            return json_response(error_response(None, error.to_error_data()), error.http_status)

        session = self.sessions.get_session(request.headers.get(SESSION_HEADER))
        set_session_id(session.session_id if session else None)
        context = RequestContext(
            principal=getattr(request.state, "principal", None),
            session=session,
        )

        try:
            raw = await request.body()
            reply = await self.processor.handle_message(raw, context)
        except McpError as e:
            return json_response(error_response(None, e.to_error_data()), e.http_status)
        except Exception:
            self.logger.exception("Unexpected error in streamable transport")
            return json_response(error_response(None, make_error_data(INTERNAL_ERROR)), 500)

        headers: dict[str, str] = {}
        if reply.initialized:
            session = self.sessions.create_session(reply.protocol_version)
            headers[SESSION_HEADER] = session.session_id
        elif session is not None:
            headers[SESSION_HEADER] = session.session_id
        headers[PROTOCOL_HEADER] = reply.protocol_version or self._protocol_version(request, session)

        if reply.kind is ReplyKind.ACCEPTED:
            return json_response(None, 202, headers)
        return json_response(reply.body, reply.http_status, headers)

    async def handle_get(self, request: Request) -> Response:
        """SSE stream when the client accepts one, otherwise a health body."""
        headers = {PROTOCOL_HEADER: self._protocol_version(request)}
        if "text/event-stream" in request.headers.get("accept", ""):
            self.logger.info("SSE stream opened", endpoint=self.endpoint)
            return create_sse_response(
                self.endpoint,
                heartbeat_interval=self.heartbeat_interval,
                max_duration=self.max_duration,
                headers=headers,
            )

        body = {
            "jsonrpc": "2.0",
            "result": {
                "status": "ok",
                "transport": "streamable-http",
                "endpoint": self.endpoint,
            },
        }
        return json_response(body, 200, headers)

    async def handle_head(self, request: Request) -> Response:
        return Response(status_code=200, headers={PROTOCOL_HEADER: self._protocol_version(request)})

    async def handle_delete(self, request: Request) -> Response:
        """End a session; unknown sessions are a 404."""
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id or self.sessions.get_session(session_id) is None:
            return json_response(None, 404)
        self.sessions.remove_session(session_id)
        return json_response(None, 204)
