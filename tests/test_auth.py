"""Tests for authentication and the read-only principal."""

import base64
import json

import pytest
from fastapi.testclient import TestClient

from woo_mcp.mcp.errors import AUTHENTICATION_ERROR, AuthenticationError, TOOL_EXECUTION_ERROR
from woo_mcp.security.auth import Authenticator, extract_basic_credentials, extract_bearer_token
from woo_mcp.security.users import Principal, User, UserDirectory


def tools_call(name: str, arguments: dict | None = None) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    }


class TestHeaderParsing:
    """Tests for Authorization header parsing."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer token", "token"),
            ("Basic abc", None),
            ("Bearer", None),
            ("Bearer a b", None),
            (None, None),
        ],
    )
    def test_extract_bearer_token(self, header, expected):
        assert extract_bearer_token(header) == expected

    def test_extract_basic_credentials(self):
        header = "Basic " + base64.b64encode(b"admin:pa:ss").decode()
        assert extract_basic_credentials(header) == ("admin", "pa:ss")

    @pytest.mark.parametrize("header", ["Basic !!!", "Basic " + base64.b64encode(b"nocolon").decode(), "Bearer x", None])
    def test_extract_basic_credentials_rejects(self, header):
        assert extract_basic_credentials(header) is None


class TestUsers:
    """Tests for configured users."""

    def test_plain_and_hashed_passwords(self, context):
        users = context.users
        assert users.authenticate("admin", "admin-secret").id == 1
        assert users.authenticate("shopper", "shopper-secret").id == 2
        assert users.authenticate("shopper", "sha256:nope") is None
        assert users.authenticate("admin", "wrong") is None
        assert users.authenticate("nobody", "admin-secret") is None

    def test_user_without_password_cannot_log_in(self):
        users = UserDirectory([User(id=3, username="service")])
        assert users.authenticate("service", "") is None

    def test_from_config(self):
        users = UserDirectory.from_config({"users": [{"id": "7", "username": "ops", "admin": True}]})
        user = users.get(7)
        assert user.is_admin is True
        assert user.summary() == {"id": 7, "username": "ops", "display_name": "ops"}

    def test_principals(self):
        anonymous = Principal.anonymous()
        assert anonymous.authenticated is False
        assert anonymous.read_only is True

        admin = Principal.for_user(User(id=1, username="a", is_admin=True), via="basic")
        assert admin.authenticated is True
        assert admin.read_only is False


class TestAuthenticator:
    """Tests for resolving credentials to principals."""

    def test_bearer(self, secure_context, bearer):
        token = secure_context.tokens.issue(2, 3600).access_token
        principal = secure_context.authenticator.authenticate(bearer(token)["Authorization"])
        assert principal.user_id == 2
        assert principal.via == "jwt"

    def test_basic(self, secure_context, basic_auth):
        principal = secure_context.authenticator.authenticate(basic_auth("admin", "admin-secret")["Authorization"])
        assert principal.user_id == 1
        assert principal.via == "basic"

    @pytest.mark.parametrize("header", [None, "Bearer garbage", "Digest abc"])
    def test_required_rejects(self, secure_context, header):
        with pytest.raises(AuthenticationError):
            secure_context.authenticator.authenticate(header)

    def test_required_rejects_bad_password(self, secure_context, basic_auth):
        with pytest.raises(AuthenticationError):
            secure_context.authenticator.authenticate(basic_auth("admin", "wrong")["Authorization"])

    @pytest.mark.parametrize("header", [None, "Bearer garbage"])
    def test_optional_falls_back_to_anonymous(self, context, header):
        """Test that rejected credentials count as none when auth is optional."""
        principal = context.authenticator.authenticate(header)
        assert principal == Principal.anonymous()

    def test_policy_is_fixed_at_construction(self, context):
        authenticator = Authenticator(context.tokens, context.users, auth_required=True)
        with pytest.raises(AuthenticationError):
            authenticator.authenticate(None)


class TestProtectedEndpoint:
    """Tests for the MCP endpoint when authentication is required."""

    def test_missing_credentials(self, secure_client: TestClient, sample_jsonrpc_request):
        response = secure_client.post("/mcp", json=sample_jsonrpc_request("tools/list"))
        assert response.status_code == 403
        data = response.json()
        assert data["error"]["code"] == AUTHENTICATION_ERROR
        assert data["error"]["message"] == "Authentication required"

    def test_rejections_are_indistinguishable(
        self, secure_client: TestClient, secure_context, bearer, basic_auth, sample_jsonrpc_request
    ):
        """Test that revoked, forged and missing credentials get the same answer."""
        revoked = secure_context.tokens.issue(1, 3600)
        secure_context.tokens.revoke(revoked.jti)

        bodies = set()
        for headers in (
            {},
            bearer(revoked.access_token),
            bearer("forged.token.value"),
            basic_auth("admin", "wrong"),
        ):
            response = secure_client.post("/mcp", json=sample_jsonrpc_request("ping"), headers=headers)
            assert response.status_code == 403
            bodies.add(response.text)
        assert len(bodies) == 1

    def test_valid_token(self, secure_client: TestClient, secure_context, bearer, sample_jsonrpc_request):
        token = secure_context.tokens.issue(1, 3600).access_token
        response = secure_client.post("/mcp", json=sample_jsonrpc_request("ping"), headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["result"] == {}

    def test_expired_token(self, secure_client: TestClient, secure_context, clock, bearer, sample_jsonrpc_request):
        token = secure_context.tokens.issue(1, 3600).access_token
        clock.advance(3600)
        response = secure_client.post("/mcp", json=sample_jsonrpc_request("ping"), headers=bearer(token))
        assert response.status_code == 403

    def test_preflight_needs_no_credentials(self, secure_client: TestClient):
        response = secure_client.options(
            "/mcp",
            headers={"Origin": "http://client.test", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200


class TestToolAuthorization:
    """Tests for which principals may call which tools."""

    def test_anonymous_cannot_call_private_tools(self, client: TestClient, store):
        response = client.post("/mcp", json=tools_call("wc_orders_search"))
        error = response.json()["error"]
        assert error["code"] == TOOL_EXECUTION_ERROR
        assert error["message"] == "Authentication required to use tool: wc_orders_search"
        assert store.requests == []

    def test_anonymous_cannot_write(self, client: TestClient, store):
        response = client.post("/mcp", json=tools_call("wp_add_post", {"title": "x", "content": "y"}))
        assert response.json()["error"]["code"] == TOOL_EXECUTION_ERROR
        assert store.requests == []

    def test_anonymous_can_read(self, client: TestClient):
        response = client.post("/mcp", json=tools_call("echo", {"msg": "hi"}))
        assert "result" in response.json()

    def test_shopper_is_read_only(self, secure_client: TestClient, basic_auth, store):
        headers = basic_auth("shopper", "shopper-secret")
        response = secure_client.post("/mcp", json=tools_call("wc_reports_sales"), headers=headers)
        assert response.json()["error"]["code"] == TOOL_EXECUTION_ERROR

        response = secure_client.post("/mcp", json=tools_call("echo", {"msg": "hi"}), headers=headers)
        assert "result" in response.json()
        assert store.requests == []

    def test_admin_can_call_private_tools(self, secure_client: TestClient, basic_auth, store):
        store.add("GET", "/wc/v3/orders", [{"id": 1, "status": "completed"}])
        response = secure_client.post(
            "/mcp",
            json=tools_call("wc_orders_search", {"status": "completed"}),
            headers=basic_auth("admin", "admin-secret"),
        )
        assert "result" in response.json()
        assert store.requests[-1].url.params["status"] == "completed"

    def test_admin_can_write(self, secure_client: TestClient, basic_auth, store):
        store.add("POST", "/wp/v2/posts", {"id": 10, "title": {"rendered": "Hello"}}, status=201)
        response = secure_client.post(
            "/mcp",
            json=tools_call("wp_add_post", {"title": "Hello", "content": "World"}),
            headers=basic_auth("admin", "admin-secret"),
        )
        assert "result" in response.json()
        request = store.requests[-1]
        assert request.method == "POST"
        assert json.loads(request.read()) == {"title": "Hello", "content": "World"}
