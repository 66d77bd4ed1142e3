"""Tests for the STDIO transport in embedded and proxy mode."""

import io
import json

import httpx
import pytest

from woo_mcp.mcp.errors import INTERNAL_ERROR, METHOD_NOT_FOUND
from woo_mcp.mcp.handlers import RequestContext
from woo_mcp.mcp.transport_stdio import LocalHandler, ProxyHandler, StdioTransport, request_ids
from woo_mcp.security.users import Principal

REMOTE_URL = "http://remote.test/mcp"


def lines(*messages) -> io.StringIO:
    return io.StringIO("".join((m if isinstance(m, str) else json.dumps(m)) + "\n" for m in messages))


def output(writer: io.StringIO) -> list:
    return [json.loads(line) for line in writer.getvalue().splitlines()]


class TestEmbedded:
    """Tests for the transport backed by the in-process processor."""

    @pytest.fixture
    def handler(self, context) -> LocalHandler:
        return LocalHandler(context.processor, RequestContext(principal=Principal.anonymous()))

    async def test_conversation(self, handler: LocalHandler, sample_jsonrpc_request):
        """Test that each request gets one line and notifications get none."""
        reader = lines(
            sample_jsonrpc_request("initialize", {"protocolVersion": "2024-11-05"}),
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
            sample_jsonrpc_request("tools/call", {"name": "echo", "arguments": {"msg": "hi"}}, id=2),
        )
        writer = io.StringIO()
        await StdioTransport(handler, reader, writer).run()

        replies = output(writer)
        assert [reply["id"] for reply in replies] == [1, 2]
        assert replies[0]["result"]["protocolVersion"] == "2024-11-05"
        assert replies[1]["result"]["content"] == [{"type": "text", "text": '{"echo":"hi"}'}]

    async def test_lines_are_compact(self, handler: LocalHandler, sample_jsonrpc_request):
        writer = io.StringIO()
        await StdioTransport(handler, lines(sample_jsonrpc_request("ping")), writer).run()
        assert writer.getvalue() == '{"jsonrpc":"2.0","id":1,"result":{}}\n'

    async def test_blank_and_malformed_lines_are_skipped(self, handler: LocalHandler, sample_jsonrpc_request):
        reader = lines("", "   ", "{not json", sample_jsonrpc_request("bogus", id=9))
        writer = io.StringIO()
        await StdioTransport(handler, reader, writer).run()

        replies = output(writer)
        assert len(replies) == 1
        assert replies[0]["id"] == 9
        assert replies[0]["error"]["code"] == METHOD_NOT_FOUND

    async def test_batch_line(self, handler: LocalHandler, sample_jsonrpc_request):
        batch = [sample_jsonrpc_request("ping", id=1), sample_jsonrpc_request("ping", id=2)]
        writer = io.StringIO()
        await StdioTransport(handler, lines(batch), writer).run()

        replies = output(writer)
        assert len(replies) == 1
        assert [reply["id"] for reply in replies[0]] == [1, 2]

    async def test_eof_without_input(self, handler: LocalHandler):
        writer = io.StringIO()
        await StdioTransport(handler, io.StringIO(""), writer).run()
        assert writer.getvalue() == ""

    async def test_principal_is_applied(self, context, sample_jsonrpc_request):
        handler = LocalHandler(context.processor, RequestContext(principal=Principal.anonymous()))
        reply = await handler.handle(sample_jsonrpc_request("tools/call", {"name": "wc_orders_search"}))
        assert "Authentication required" in reply["error"]["message"]


class RemoteServer:
    """Answers proxied requests and records what it received."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.respond = self.echo_ids

    def echo_ids(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        items = payload if isinstance(payload, list) else [payload]
        replies = [{"jsonrpc": "2.0", "id": item["id"], "result": {}} for item in items if "id" in item]
        if not replies:
            return httpx.Response(202)
        body = replies if isinstance(payload, list) else replies[0]
        return httpx.Response(200, json=body, headers={"Mcp-Session-Id": "remote-session"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)


class TestProxy:
    """Tests for forwarding to a remote endpoint."""

    @pytest.fixture
    def remote(self) -> RemoteServer:
        return RemoteServer()

    @pytest.fixture
    async def proxy(self, remote: RemoteServer):
        handler = ProxyHandler(REMOTE_URL, token="secret-token", transport=httpx.MockTransport(remote.handler))
        yield handler
        await handler.aclose()

    async def test_forwards_and_keeps_session(self, proxy: ProxyHandler, remote: RemoteServer, sample_jsonrpc_request):
        reply = await proxy.handle(sample_jsonrpc_request("initialize"))
        assert reply == {"jsonrpc": "2.0", "id": 1, "result": {}}
        assert proxy.session_id == "remote-session"

        await proxy.handle(sample_jsonrpc_request("ping", id=2))
        first, second = remote.requests
        assert first.headers["Authorization"] == "Bearer secret-token"
        assert "Mcp-Session-Id" not in first.headers
        assert second.headers["Mcp-Session-Id"] == "remote-session"

    async def test_notification_gets_no_reply(self, proxy: ProxyHandler):
        assert await proxy.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None

    async def test_event_stream_reply(self, proxy: ProxyHandler, remote: RemoteServer, sample_jsonrpc_request):
        remote.respond = lambda request: httpx.Response(
            200,
            text='event: message\ndata: {"jsonrpc":"2.0","id":1,"result":{"ok":true}}\n\n',
            headers={"Content-Type": "text/event-stream"},
        )
        reply = await proxy.handle(sample_jsonrpc_request("ping"))
        assert reply == {"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}

    async def test_error_status_with_body_is_relayed(self, proxy: ProxyHandler, remote: RemoteServer, sample_jsonrpc_request):
        body = {"jsonrpc": "2.0", "id": None, "error": {"code": -32001, "message": "Authentication required"}}
        remote.respond = lambda request: httpx.Response(403, json=body)
        assert await proxy.handle(sample_jsonrpc_request("ping")) == body

    async def test_non_json_reply(self, proxy: ProxyHandler, remote: RemoteServer, sample_jsonrpc_request):
        remote.respond = lambda request: httpx.Response(502, text="Bad Gateway")
        reply = await proxy.handle(sample_jsonrpc_request("ping", id=4))
        assert reply["id"] == 4
        assert reply["error"]["code"] == INTERNAL_ERROR
        assert "502" in reply["error"]["message"]

    async def test_connection_failure(self, proxy: ProxyHandler, remote: RemoteServer, sample_jsonrpc_request):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        remote.respond = refuse
        batch = [sample_jsonrpc_request("ping", id=1), {"jsonrpc": "2.0", "method": "notifications/initialized"}, sample_jsonrpc_request("ping", id=2)]
        reply = await proxy.handle(batch)
        assert [item["id"] for item in reply] == [1, 2]
        assert all(item["error"]["code"] == INTERNAL_ERROR for item in reply)

        assert await proxy.handle({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None


def test_request_ids():
    payload = [
        {"jsonrpc": "2.0", "id": 1, "method": "ping"},
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        {"jsonrpc": "2.0", "id": 3, "result": {}},
        "junk",
    ]
    assert request_ids(payload) == [1]
    assert request_ids({"jsonrpc": "2.0", "id": "a", "method": "ping"}) == ["a"]
