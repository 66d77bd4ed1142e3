"""JSON-RPC 2.0 message processing."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from woo_mcp.mcp.errors import (
    INTERNAL_ERROR,
    InvalidRequestError,
    McpError,
    ParseError,
    error_response,
    make_error_data,
)
from woo_mcp.mcp.handlers import MCPHandlers, RequestContext, negotiate_protocol_version
from woo_mcp.mcp.models import JsonRpcError, JsonRpcMessage, JsonRpcResponse, encode_message
from woo_mcp.utils.logging import get_logger

__all__ = ["JsonRpcProcessor", "JsonRpcReply", "ReplyKind", "encode_message"]


class ReplyKind(str, Enum):
    """What a transport should send back for one inbound payload."""

    RESPONSE = "response"  # body present, HTTP 200
    ACCEPTED = "accepted"  # nothing to answer, HTTP 202
    REJECTED = "rejected"  # malformed payload, HTTP 400


@dataclass
class JsonRpcReply:
    """Result of routing one payload (single message or batch)."""

    kind: ReplyKind
    body: dict[str, Any] | list[dict[str, Any]] | None = None
    initialized: bool = False
    protocol_version: str | None = None

    @property
    def http_status(self) -> int:
        if self.kind is ReplyKind.RESPONSE:
            return 200
        if self.kind is ReplyKind.ACCEPTED:
            return 202
        return 400


class JsonRpcProcessor:
    """Process JSON-RPC 2.0 messages.

    Shared by both transports: they hand over raw payloads and write back
    whatever `JsonRpcReply.body` holds.
    """

    def __init__(self, handlers: MCPHandlers, logger: Any = None):
        self.handlers = handlers
        self.logger = logger or get_logger("jsonrpc")

    def parse_payload(self, raw_data: str | bytes) -> Any:
        """
        Decode raw JSON.

        Raises:
            ParseError: The payload is not valid JSON.
        """
        try:
            if isinstance(raw_data, bytes):
                raw_data = raw_data.decode("utf-8")
            return json.loads(raw_data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"Parse error: {e}") from e

    def validate_message(self, data: Any) -> JsonRpcMessage:
        """
        Check one decoded message has a valid request, notification or response shape.

        Raises:
            InvalidRequestError: The message is not a valid JSON-RPC 2.0 message.
        """
        if not isinstance(data, dict):
            raise InvalidRequestError("Invalid Request: message must be an object")
        try:
            message = JsonRpcMessage(**data)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid Request: {e.errors()[0]['msg']}") from e

        if "method" in data:
            if not isinstance(data["method"], str) or not data["method"]:
                raise InvalidRequestError("Invalid Request: method must be a non-empty string")
            return message

        # Responses: an id and exactly one of result/error
        if "id" not in data or (("result" in data) == ("error" in data)):
            raise InvalidRequestError("Invalid Request: missing method")
        return message

    async def process_request(
        self, message: JsonRpcMessage, context: RequestContext
    ) -> JsonRpcResponse | None:
        """
        Dispatch a validated message.

        Returns None for notifications and client responses.
        """
        if message.method is None:
            # A response from the client; nothing is waiting for it
            self.logger.debug("Ignoring client response", id=message.id)
            return None

        result, error = await self.handlers.dispatch(message.method, message.param_dict, context)

        # Notifications don't get responses
        if message.is_notification:
            return None

        if error is not None:
            return JsonRpcResponse(id=message.id, error=JsonRpcError(**error))
        return JsonRpcResponse(id=message.id, result=result)

    async def handle_payload(self, data: Any, context: RequestContext | None = None) -> JsonRpcReply:
        """Route an already-decoded payload: one message or a batch."""
        context = context or RequestContext()
        is_batch = isinstance(data, list)
        items = data if is_batch else [data]

        try:
            if is_batch and not items:
                raise InvalidRequestError("Invalid Request: empty batch")
            messages = [self.validate_message(item) for item in items]
        except InvalidRequestError as e:
            request_id = data.get("id") if isinstance(data, dict) else None
            if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
                request_id = None
            return JsonRpcReply(ReplyKind.REJECTED, error_response(request_id, e.to_error_data()))

        reply = JsonRpcReply(ReplyKind.ACCEPTED)
        responses: list[dict[str, Any]] = []
        for message in messages:
            response = await self.process_request(message, context)
            if response is None:
                continue
            if message.method == "initialize" and response.error is None:
                reply.initialized = True
                reply.protocol_version = negotiate_protocol_version(
                    message.param_dict.get("protocolVersion")
                )
            responses.append(response.model_dump())

        if responses:
            reply.kind = ReplyKind.RESPONSE
            reply.body = responses if len(responses) > 1 else responses[0]
        return reply

    async def handle_message(
        self, raw_data: str | bytes, context: RequestContext | None = None
    ) -> JsonRpcReply:
        """
        Handle a raw JSON-RPC payload end-to-end.

        Never raises: every failure is turned into a reply.
        """
        try:
            data = self.parse_payload(raw_data)
        except ParseError as e:
            self.logger.warning("Rejected unparseable message", error=e.message)
            # Parse errors don't have a request id
            return JsonRpcReply(ReplyKind.REJECTED, error_response(None, e.to_error_data()))

        try:
            return await self.handle_payload(data, context)
        except McpError as e:
            return JsonRpcReply(ReplyKind.RESPONSE, error_response(None, e.to_error_data()))
        except Exception:
            self.logger.exception("Unexpected error processing message")
            return JsonRpcReply(ReplyKind.RESPONSE, error_response(None, make_error_data(INTERNAL_ERROR)))

    def serialize_response(self, reply: JsonRpcReply) -> str:
        """Serialize a reply body to a JSON string."""
        return encode_message(reply.body)
