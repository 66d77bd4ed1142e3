"""Line-delimited STDIO transport, embedded or proxying to a remote server."""

import asyncio
import json
import sys
from typing import Any, Protocol, TextIO

import httpx

from woo_mcp.mcp.errors import INTERNAL_ERROR, error_response, make_error_data
from woo_mcp.mcp.handlers import RequestContext
from woo_mcp.mcp.jsonrpc import JsonRpcProcessor
from woo_mcp.mcp.models import encode_message
from woo_mcp.mcp.transport_streamable import SESSION_HEADER
from woo_mcp.utils.logging import get_logger


class MessageHandler(Protocol):
    async def handle(self, payload: Any) -> Any | None:
        """Return the reply body for a decoded payload, or None for no reply."""


class LocalHandler:
    """Route messages through an in-process JSON-RPC processor."""

    def __init__(self, processor: JsonRpcProcessor, context: RequestContext | None = None):
        self.processor = processor
        self.context = context or RequestContext()

    async def handle(self, payload: Any) -> Any | None:
        reply = await self.processor.handle_payload(payload, self.context)
        return reply.body


def request_ids(payload: Any) -> list[Any]:
    """Ids of the requests in a payload; notifications have none."""
    items = payload if isinstance(payload, list) else [payload]
    return [
        item["id"]
        for item in items
        if isinstance(item, dict) and "method" in item and item.get("id") is not None
    ]


class ProxyHandler:
    """Forward each message to a remote streamable HTTP endpoint."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: Any = None,
    ):
        self.url = url
        self.token = token
        self.session_id: str | None = None
        self.logger = logger or get_logger("stdio.proxy")
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    def _failure(self, payload: Any, message: str) -> Any | None:
        """-32603 for every request in the payload."""
        errors = [
            error_response(request_id, make_error_data(INTERNAL_ERROR, message))
            for request_id in request_ids(payload)
        ]
        if not errors:
            return None
        return errors if isinstance(payload, list) else errors[0]

    @staticmethod
    def _parse_event_stream(text: str) -> Any | None:
        """Last JSON `data:` payload of an SSE body."""
        body = None
        for line in text.splitlines():
            if line.startswith("data:"):
                data = line[len("data:"):].strip()
                if data:
                    try:
                        body = json.loads(data)
                    except json.JSONDecodeError:
                        continue
        return body

    async def handle(self, payload: Any) -> Any | None:
        try:
            response = await self._client.post(self.url, content=encode_message(payload), headers=self._headers())
        except httpx.HTTPError as e:
            self.logger.error("Proxy request failed", url=self.url, error=str(e))
            return self._failure(payload, f"Proxy request failed: {e}")

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id

        if response.status_code == 202 or not response.content:
            return None

        if "text/event-stream" in response.headers.get("content-type", ""):
            body = self._parse_event_stream(response.text)
        else:
            try:
                body = response.json()
            except ValueError:
                body = None

        if isinstance(body, (dict, list)):
            # Error statuses still carry JSON-RPC bodies worth relaying
            return body

        self.logger.error("Proxy received a non JSON-RPC reply", status=response.status_code)
        return self._failure(payload, f"Remote server returned HTTP {response.status_code}")

    async def aclose(self) -> None:
        await self._client.aclose()


class StdioTransport:
    """Read one JSON message per line, write one compact JSON line per reply."""

    def __init__(
        self,
        handler: MessageHandler,
        reader: TextIO | None = None,
        writer: TextIO | None = None,
        logger: Any = None,
    ):
        self.handler = handler
        self.reader = reader or sys.stdin
        self.writer = writer or sys.stdout
        self.logger = logger or get_logger("stdio")

    def write(self, body: Any) -> None:
        self.writer.write(encode_message(body) + "\n")
        self.writer.flush()

    async def handle_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            self.logger.warning("Skipping malformed input line", error=str(e))
            return

        body = await self.handler.handle(payload)
        if body is not None:
            self.write(body)

    async def run(self) -> None:
        """Process lines until EOF."""
        self.logger.info("STDIO transport started")
        while True:
            line = await asyncio.to_thread(self.reader.readline)
            if not line:
                break
            await self.handle_line(line)
        self.logger.info("STDIO transport stopped (EOF)")
