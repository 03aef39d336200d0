# Assumptions:
# - Using pytest and pytest-asyncio for testing framework
# - The identity service is simulated with httpx.MockTransport
# - Scenarios cover scoping (API key / tenant / anonymous) and outcome mapping

import json
from urllib.parse import parse_qs

import httpx
import pytest

from identity_client import (
    TENANT_ID_HEADER,
    ClientResponse,
    ClientResponseError,
    IdentityClient,
    MissingRequiredArgumentError,
)
from identity_client.config import ClientSettings
from identity_client.errors import ErrorCode

API_KEY = "K"
HOST = "https://h"


class FakeIdentityService:
    """Records every request and answers with a configurable response"""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.response = httpx.Response(200, json={})
        self.error: Exception | None = None
        self.on_request = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            self.on_request(request)
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def service():
    """Fake identity service"""
    return FakeIdentityService()


@pytest.fixture
def client(service):
    """IdentityClient wired to the fake service"""
    return IdentityClient(api_key=API_KEY, host=HOST, transport=httpx.MockTransport(service))


class TestOutcomeMapping:
    """Test cases for resolve/reject behaviour"""

    @pytest.mark.asyncio
    async def test_create_resolves_with_success_body(self, client, service):
        """Test POST with API key and JSON body resolves with the parsed body"""
        # Arrange
        service.response = httpx.Response(200, json={"id": "abc"})

        # Act
        response = await client.create_user(None, {"name": "x"})

        # Assert
        assert isinstance(response, ClientResponse)
        assert response.status_code == 200
        assert response.success_response == {"id": "abc"}

        sent = service.last
        assert sent.method == "POST"
        assert str(sent.url) == "https://h/api/user"
        assert sent.headers["Authorization"] == "K"
        assert json.loads(sent.content) == {"name": "x"}

    @pytest.mark.asyncio
    async def test_delete_rejects_with_error_body(self, client, service):
        """Test a 404 rejects with the status code and error body preserved"""
        service.response = httpx.Response(404, json={"error": "not found"})

        with pytest.raises(ClientResponseError) as exc_info:
            await client.deactivate_user("abc")

        error = exc_info.value
        assert error.status_code == 404
        assert error.response.error_response == {"error": "not found"}
        assert error.error_response == {"error": "not found"}
        assert error.error_code == ErrorCode.REQUEST_FAILED
        assert service.last.method == "DELETE"
        assert str(service.last.url) == "https://h/api/user/abc"

    @pytest.mark.asyncio
    async def test_transport_failure_rejects_with_synthetic_500(self, client, service):
        """Test a refused connection rejects with the exception and status 500"""
        service.error = httpx.ConnectError("Connection refused")

        with pytest.raises(ClientResponseError) as exc_info:
            await client.retrieve_tenants()

        response = exc_info.value.response
        assert response.status_code == 500
        assert isinstance(response.exception, httpx.ConnectError)
        assert response.was_successful() is False
        assert exc_info.value.error_code == ErrorCode.TRANSPORT_FAILED

    @pytest.mark.asyncio
    async def test_redirect_is_a_failure(self, client, service):
        """Test 3xx responses are not treated as success"""
        service.response = httpx.Response(302, headers={"Location": "https://elsewhere"})

        with pytest.raises(ClientResponseError) as exc_info:
            await client.retrieve_applications()

        assert exc_info.value.status_code == 302

    @pytest.mark.asyncio
    async def test_missing_required_argument_fails_before_network(self, client, service):
        """Test a missing identifier raises locally and sends nothing"""
        with pytest.raises(MissingRequiredArgumentError) as exc_info:
            await client.delete_user(None)

        assert exc_info.value.argument_name == "user_id"
        assert service.requests == []

    @pytest.mark.asyncio
    async def test_unparsable_host_rejects_with_synthetic_500(self, service):
        """Test a host with an invalid port rejects instead of raising httpx errors"""
        client = IdentityClient(API_KEY, "https://h:notaport", transport=httpx.MockTransport(service))

        with pytest.raises(ClientResponseError) as exc_info:
            await client.retrieve_tenants()

        assert exc_info.value.status_code == 500
        assert exc_info.value.error_code == ErrorCode.TRANSPORT_FAILED
        assert isinstance(exc_info.value.response.exception, httpx.InvalidURL)
        assert service.requests == []


class TestScoping:
    """Test cases for API key and tenant scoping"""

    @pytest.mark.asyncio
    async def test_tenant_header_added_after_selection(self, client, service):
        """Test set_tenant_id scopes subsequent authenticated calls"""
        await client.retrieve_user("u1")
        assert TENANT_ID_HEADER not in service.last.headers

        client.set_tenant_id("T1")
        await client.retrieve_user("u1")

        assert service.last.headers[TENANT_ID_HEADER] == "T1"
        assert service.last.headers["Authorization"] == "K"

    @pytest.mark.asyncio
    async def test_in_flight_call_does_not_gain_tenant(self, client, service):
        """Test changing the tenant while a call is in flight only affects later calls"""
        service.on_request = lambda request: client.set_tenant_id("T1")

        await client.retrieve_tenants()
        first = service.last
        service.on_request = None
        await client.retrieve_tenants()
        second = service.last

        assert TENANT_ID_HEADER not in first.headers
        assert second.headers[TENANT_ID_HEADER] == "T1"

    @pytest.mark.asyncio
    async def test_clearing_tenant_removes_header(self, client, service):
        """Test set_tenant_id(None) stops sending the tenant header"""
        client.set_tenant_id("T1").set_tenant_id(None)

        await client.retrieve_groups()

        assert TENANT_ID_HEADER not in service.last.headers

    @pytest.mark.asyncio
    async def test_anonymous_call_has_tenant_but_no_api_key(self, client, service):
        """Test discovery endpoints skip the API key but keep tenant scoping"""
        service.response = httpx.Response(200, json={"keys": [{"kid": "k1"}]})
        client.set_tenant_id("T1")

        response = await client.retrieve_json_web_key_set()

        assert response.success_response == {"keys": [{"kid": "k1"}]}
        assert str(service.last.url) == "https://h/.well-known/jwks.json"
        assert "Authorization" not in service.last.headers
        assert service.last.headers[TENANT_ID_HEADER] == "T1"

    @pytest.mark.asyncio
    async def test_client_without_api_key_sends_no_authorization(self, service):
        """Test a client built without an API key never sends 'None'"""
        client = IdentityClient(api_key=None, host=HOST, transport=httpx.MockTransport(service))

        await client.retrieve_open_id_configuration()
        await client.retrieve_system_configuration()

        assert all("Authorization" not in request.headers for request in service.requests)


class TestOperations:
    """Test cases for endpoint shapes"""

    @pytest.mark.asyncio
    async def test_issue_jwt_uses_bearer_token(self, client, service):
        """Test JWT issue sends the caller token as Bearer and the application id"""
        await client.issue_jwt("app-1", "encoded.jwt.value")

        sent = service.last
        assert sent.method == "GET"
        assert sent.url.path == "/api/jwt/issue"
        assert sent.url.params["applicationId"] == "app-1"
        assert sent.headers["Authorization"] == "Bearer encoded.jwt.value"

    @pytest.mark.asyncio
    async def test_validate_jwt_rejects_on_401(self, client, service):
        """Test an invalid JWT surfaces as a rejected 401"""
        service.response = httpx.Response(401)

        with pytest.raises(ClientResponseError) as exc_info:
            await client.validate_jwt("expired.jwt")

        assert exc_info.value.status_code == 401
        assert exc_info.value.response.error_response is None

    @pytest.mark.asyncio
    async def test_exchange_oauth_code_sends_form_body(self, client, service):
        """Test the authorization code grant is form encoded and anonymous"""
        service.response = httpx.Response(200, json={"access_token": "at", "token_type": "Bearer"})

        response = await client.exchange_oauth_code_for_access_token(
            code="c0de", client_id="cid", client_secret=None, redirect_uri="https://app/callback"
        )

        sent = service.last
        assert response.success_response["access_token"] == "at"
        assert sent.method == "POST"
        assert sent.url.path == "/oauth2/token"
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert "Authorization" not in sent.headers
        assert parse_qs(sent.content.decode()) == {
            "code": ["c0de"],
            "client_id": ["cid"],
            "grant_type": ["authorization_code"],
            "redirect_uri": ["https://app/callback"],
        }

    @pytest.mark.asyncio
    async def test_client_credentials_grant_uses_basic_auth(self, client, service):
        """Test the client credentials grant authenticates with HTTP Basic"""
        await client.client_credentials_grant("user", "secret", scope="target-entity:read")

        sent = service.last
        assert sent.headers["Authorization"] == "Basic dXNlcjpzZWNyZXQ="
        assert parse_qs(sent.content.decode()) == {
            "grant_type": ["client_credentials"],
            "scope": ["target-entity:read"],
        }

    @pytest.mark.asyncio
    async def test_search_users_repeats_ids(self, client, service):
        """Test multi-valued parameters are sent as repeated pairs"""
        await client.search_users(["u1", "u2"])

        assert service.last.url.params.get_list("ids") == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_logout_omits_missing_refresh_token(self, client, service):
        """Test optional parameters are dropped rather than sent empty"""
        await client.logout(True)

        sent = service.last
        assert sent.method == "POST"
        assert sent.url.params["global"] == "true"
        assert "refreshToken" not in sent.url.params
        assert "Authorization" not in sent.headers

    @pytest.mark.asyncio
    async def test_delete_application_is_hard_delete(self, client, service):
        """Test permanent deletion sends the hardDelete flag"""
        await client.delete_application("app-1")

        sent = service.last
        assert sent.method == "DELETE"
        assert sent.url.path == "/api/application/app-1"
        assert sent.url.params["hardDelete"] == "true"

    @pytest.mark.asyncio
    async def test_patch_user(self, client, service):
        """Test partial updates use PATCH with a JSON body"""
        service.response = httpx.Response(200, json={"user": {"id": "u1", "firstName": "Jan"}})

        response = await client.patch_user("u1", {"user": {"firstName": "Jan"}})

        assert service.last.method == "PATCH"
        assert service.last.url.path == "/api/user/u1"
        assert response.success_response["user"]["firstName"] == "Jan"

    @pytest.mark.asyncio
    async def test_create_application_role_path(self, client, service):
        """Test nested resources append each segment once"""
        await client.create_application_role("app-1", None, {"role": {"name": "admin"}})

        assert service.last.url.path == "/api/application/app-1/role"

    @pytest.mark.asyncio
    async def test_login_ping_with_ip_address(self, client, service):
        """Test login ping sends both ids as segments and the optional address"""
        await client.login_ping("u1", "app-1", caller_ip_address="10.0.0.1")

        sent = service.last
        assert sent.method == "PUT"
        assert sent.url.path == "/api/login/u1/app-1"
        assert sent.url.params["ipAddress"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_revoke_refresh_token_by_user(self, client, service):
        """Test only the supplied filters are sent"""
        await client.revoke_refresh_token(user_id="u1")

        sent = service.last
        assert sent.method == "DELETE"
        assert dict(sent.url.params) == {"userId": "u1"}

    @pytest.mark.asyncio
    async def test_forgot_password_sends_api_key(self, client, service):
        """Test forgot password is an API key call, unlike change password"""
        await client.forgot_password({"loginId": "jane@example.com"})
        await client.change_password("cp-1", {"password": "new"})

        forgot, change = service.requests
        assert forgot.method == "POST"
        assert str(forgot.url) == "https://h/api/user/forgot-password"
        assert forgot.headers["Authorization"] == "K"
        assert json.loads(forgot.content) == {"loginId": "jane@example.com"}
        assert str(change.url) == "https://h/api/user/change-password/cp-1"
        assert "Authorization" not in change.headers


class TestFromSettings:
    """Test cases for settings-based construction"""

    @pytest.mark.asyncio
    async def test_from_settings(self, service):
        """Test the client picks up host, API key and tenant from settings"""
        settings = ClientSettings(base_url="https://id.example.com", api_key="settings-key", tenant_id="T9")

        client = IdentityClient.from_settings(settings, transport=httpx.MockTransport(service))
        await client.retrieve_tenants()

        sent = service.last
        assert str(sent.url) == "https://id.example.com/api/tenant"
        assert sent.headers["Authorization"] == "settings-key"
        assert sent.headers[TENANT_ID_HEADER] == "T9"
