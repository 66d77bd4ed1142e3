"""Tests for the REST backend client."""

import base64
import json

import httpx
import pytest

from woo_mcp.backend.client import RestBackend, build_request, format_param
from woo_mcp.config.loader import Settings
from woo_mcp.mcp.errors import BackendUnavailableError, InvalidParamsError, ToolExecutionError


@pytest.fixture
def make_backend():
    """Backend factory around a request handler."""
    def _make(handler, **settings):
        settings = Settings(_env_file=None, backend_url="http://store.test/wp-json", **settings)
        return RestBackend(settings, transport=httpx.MockTransport(handler))
    return _make


class TestBuildRequest:
    """Tests for turning tool arguments into a request."""

    def test_regex_placeholder(self):
        path, query, body = build_request("GET", "/wc/v3/products/(?P<id>[\\d]+)", {"id": 42, "context": "view"})
        assert path == "/wc/v3/products/42"
        assert query == {"context": "view"}
        assert body is None

    def test_brace_placeholders(self):
        path, query, _ = build_request("GET", "/wc/v3/products/{product_id}/variations/{id}", {"product_id": 7, "id": 9})
        assert path == "/wc/v3/products/7/variations/9"
        assert query == {}

    def test_body_methods(self):
        path, query, body = build_request("POST", "/wp/v2/posts/(?P<id>[\\d]+)", {"id": 3, "title": "New", "tags": [1, 2]})
        assert path == "/wp/v2/posts/3"
        assert query == {}
        assert body == {"title": "New", "tags": [1, 2]}

    def test_values_are_quoted(self):
        path, _, _ = build_request("GET", "/wc/v3/products/{slug}", {"slug": "a/b c"})
        assert path == "/wc/v3/products/a%2Fb%20c"

    @pytest.mark.parametrize("arguments", [{}, {"id": None}])
    def test_missing_placeholder(self, arguments):
        with pytest.raises(InvalidParamsError):
            build_request("GET", "/wc/v3/orders/{id}", arguments)

    def test_list_query_values_are_comma_separated(self):
        _, query, _ = build_request("GET", "/wp/v2/posts", {"categories": [1, 2], "include": []})
        assert query == {"categories": "1,2", "include": ""}

    def test_format_param(self):
        assert format_param(True) == "true"
        assert format_param(False) == "false"
        assert format_param([1, 2]) == "[1,2]"
        assert format_param({"a": 1}) == '{"a":1}'
        assert format_param(0) == "0"


class TestCall:
    """Tests for calling the backend."""

    async def test_success(self, make_backend):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": 1}])

        backend = make_backend(handler)
        result = await backend.call("GET", "/wc/v3/products", {"on_sale": True, "per_page": 5})
        await backend.aclose()

        assert result == [{"id": 1}]
        request = seen[0]
        assert str(request.url).startswith("http://store.test/wp-json/wc/v3/products?")
        assert request.url.params["on_sale"] == "true"
        assert request.url.params["per_page"] == "5"
        assert request.headers["User-Agent"] == "woo-mcp/1.0.0"

    async def test_json_body(self, make_backend):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": 10})

        backend = make_backend(handler)
        await backend.call("post", "/wp/v2/posts", {"title": "Hello"})
        await backend.aclose()

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"title": "Hello"}

    async def test_array_query_argument(self, make_backend):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        backend = make_backend(handler)
        await backend.call("GET", "/wp/v2/posts", {"categories": [1, 2], "search": "news"})
        await backend.aclose()

        params = seen[0].url.params
        assert params.get_list("categories") == ["1,2"]
        assert params["search"] == "news"
        assert "%5B" not in str(seen[0].url)

    async def test_basic_auth(self, make_backend):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        backend = make_backend(handler, backend_username="api", backend_password="key")
        await backend.get("/wc/v3/products")
        await backend.aclose()

        expected = "Basic " + base64.b64encode(b"api:key").decode()
        assert seen[0].headers["Authorization"] == expected

    async def test_empty_response(self, make_backend):
        backend = make_backend(lambda request: httpx.Response(204))
        assert await backend.call("DELETE", "/wp/v2/posts/1", {}) is None
        await backend.aclose()

    async def test_error_status(self, make_backend):
        """Test that the WordPress error message and status are surfaced."""
        backend = make_backend(
            lambda request: httpx.Response(
                401, json={"code": "woocommerce_rest_cannot_view", "message": "Sorry, you cannot list resources."}
            )
        )
        with pytest.raises(ToolExecutionError) as exc_info:
            await backend.call("GET", "/wc/v3/orders", {})
        await backend.aclose()

        assert exc_info.value.message == "Sorry, you cannot list resources."
        assert exc_info.value.data == {"status": 401}

    async def test_error_without_json(self, make_backend):
        backend = make_backend(lambda request: httpx.Response(500, text="Internal Server Error"))
        with pytest.raises(ToolExecutionError) as exc_info:
            await backend.call("GET", "/wc/v3/orders", {})
        await backend.aclose()
        assert exc_info.value.message == "Internal Server Error"

    async def test_timeout(self, make_backend):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        backend = make_backend(handler)
        with pytest.raises(BackendUnavailableError):
            await backend.call("GET", "/wc/v3/products", {})
        await backend.aclose()
        # Timeouts are not retried
        assert len(attempts) == 1

    async def test_connection_errors_are_retried(self, make_backend):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        backend = make_backend(handler)
        with pytest.raises(BackendUnavailableError):
            await backend.call("GET", "/wc/v3/products", {})
        await backend.aclose()
        assert len(attempts) == 3

    async def test_recovers_after_connection_error(self, make_backend):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        backend = make_backend(handler)
        assert await backend.call("GET", "/", {}) == {"ok": True}
        await backend.aclose()
        assert len(attempts) == 2
