# Assumptions:
# - Server-to-server calls authenticate with the raw API key in Authorization
# - User-context calls take a caller supplied JWT sent as "Bearer <jwt>"
# - Request and response payloads are opaque JSON mappings

from collections.abc import Iterable
from typing import Any

import httpx

from .config import ClientSettings, get_settings
from .errors import ClientResponseError, MissingRequiredArgumentError
from .http import ClientResponse, RESTRequest

TENANT_ID_HEADER = "X-Tenant-Id"


class IdentityClient:
    """Asynchronous client for the identity service REST API.

    Every operation returns the :class:`ClientResponse` when the service
    answers with a 2xx status and raises :class:`ClientResponseError`
    (carrying the same envelope) for any other status or a transport failure.
    """

    def __init__(
        self,
        api_key: str | None,
        host: str,
        tenant_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        certificate: str | None = None,
        key: str | None = None,
    ):
        self.api_key = api_key
        self.host = host
        self.tenant_id = tenant_id
        self.certificate = certificate
        self.key = key
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "IdentityClient":
        """Create a client from IDENTITY_CLIENT_* environment settings"""
        settings = settings or get_settings()
        return cls(
            api_key=settings.api_key,
            host=settings.base_url,
            tenant_id=settings.tenant_id,
            transport=transport,
            certificate=settings.client_certificate,
            key=settings.client_key,
        )

    def set_tenant_id(self, tenant_id: str | None) -> "IdentityClient":
        """Scope every subsequent request to the given tenant (None clears it)"""
        self.tenant_id = tenant_id
        return self

    # ------------------------------------------------------------------ #
    # Applications                                                       #
    # ------------------------------------------------------------------ #
    async def create_application(self, application_id: str | None, request: dict) -> ClientResponse:
        """Create an application; the id is generated when application_id is None"""
        self._require(request, "request")
        return await self._send(
            self._start().uri("/api/application").url_segment(application_id).set_json_body(request).post()
        )

    async def retrieve_application(self, application_id: str) -> ClientResponse:
        self._require(application_id, "application_id")
        return await self._send(self._start().uri("/api/application").url_segment(application_id).get())

    async def retrieve_applications(self) -> ClientResponse:
        return await self._send(self._start().uri("/api/application").get())

    async def retrieve_inactive_applications(self) -> ClientResponse:
        return await self._send(self._start().uri("/api/application").url_parameter("inactive", True).get())

    async def update_application(self, application_id: str, request: dict) -> ClientResponse:
        self._require(application_id, "application_id")
        return await self._send(
            self._start().uri("/api/application").url_segment(application_id).set_json_body(request).put()
        )

    async def patch_application(self, application_id: str, request: dict) -> ClientResponse:
        self._require(application_id, "application_id")
        return await self._send(
            self._start().uri("/api/application").url_segment(application_id).set_json_body(request).patch()
        )

    async def deactivate_application(self, application_id: str) -> ClientResponse:
        """Soft-delete an application so it can be reactivated later"""
        self._require(application_id, "application_id")
        return await self._send(self._start().uri("/api/application").url_segment(application_id).delete())

    async def reactivate_application(self, application_id: str) -> ClientResponse:
        self._require(application_id, "application_id")
        return await self._send(
            self._start()
            .uri("/api/application")
            .url_segment(application_id)
            .url_parameter("reactivate", True)
            .put()
        )

    async def delete_application(self, application_id: str) -> ClientResponse:
        """Permanently delete an application and everything attached to it"""
        self._require(application_id, "application_id")
        return await self._send(
            self._start()
            .uri("/api/application")
            .url_segment(application_id)
            .url_parameter("hardDelete", True)
            .delete()
        )

    async def create_application_role(
        self, application_id: str, role_id: str | None, request: dict
    ) -> ClientResponse:
        self._require(application_id, "application_id")
        return await self._send(
            self._start()
            .uri("/api/application")
            .url_segment(application_id)
            .url_segment("role")
            .url_segment(role_id)
            .set_json_body(request)
            .post()
        )

    async def delete_application_role(self, application_id: str, role_id: str) -> ClientResponse:
        self._require(application_id, "application_id")
        self._require(role_id, "role_id")
        return await self._send(
            self._start()
            .uri("/api/application")
            .url_segment(application_id)
            .url_segment("role")
            .url_segment(role_id)
            .delete()
        )

    # ------------------------------------------------------------------ #
    # Tenants                                                            #
    # ------------------------------------------------------------------ #
    async def create_tenant(self, tenant_id: str | None, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/tenant").url_segment(tenant_id).set_json_body(request).post())

    async def retrieve_tenant(self, tenant_id: str) -> ClientResponse:
        self._require(tenant_id, "tenant_id")
        return await self._send(self._start().uri("/api/tenant").url_segment(tenant_id).get())

    async def retrieve_tenants(self) -> ClientResponse:
        return await self._send(self._start().uri("/api/tenant").get())

    async def update_tenant(self, tenant_id: str, request: dict) -> ClientResponse:
        self._require(tenant_id, "tenant_id")
        return await self._send(self._start().uri("/api/tenant").url_segment(tenant_id).set_json_body(request).put())

    async def patch_tenant(self, tenant_id: str, request: dict) -> ClientResponse:
        self._require(tenant_id, "tenant_id")
        return await self._send(
            self._start().uri("/api/tenant").url_segment(tenant_id).set_json_body(request).patch()
        )

    async def delete_tenant(self, tenant_id: str) -> ClientResponse:
        self._require(tenant_id, "tenant_id")
        return await self._send(self._start().uri("/api/tenant").url_segment(tenant_id).delete())

    # ------------------------------------------------------------------ #
    # Users                                                              #
    # ------------------------------------------------------------------ #
    async def create_user(self, user_id: str | None, request: dict) -> ClientResponse:
        """Create a user; the id is generated when user_id is None"""
        self._require(request, "request")
        return await self._send(self._start().uri("/api/user").url_segment(user_id).set_json_body(request).post())

    async def retrieve_user(self, user_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(self._start().uri("/api/user").url_segment(user_id).get())

    async def retrieve_user_by_email(self, email: str) -> ClientResponse:
        self._require(email, "email")
        return await self._send(self._start().uri("/api/user").url_parameter("email", email).get())

    async def retrieve_user_by_login_id(self, login_id: str) -> ClientResponse:
        """Retrieve a user by email address or username"""
        self._require(login_id, "login_id")
        return await self._send(self._start().uri("/api/user").url_parameter("loginId", login_id).get())

    async def retrieve_user_by_username(self, username: str) -> ClientResponse:
        self._require(username, "username")
        return await self._send(self._start().uri("/api/user").url_parameter("username", username).get())

    async def retrieve_user_using_jwt(self, encoded_jwt: str) -> ClientResponse:
        """Retrieve the user that owns the given JWT (no API key required)"""
        self._require(encoded_jwt, "encoded_jwt")
        return await self._send(self._start_anonymous().uri("/api/user").authorization(f"Bearer {encoded_jwt}").get())

    async def update_user(self, user_id: str, request: dict) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(self._start().uri("/api/user").url_segment(user_id).set_json_body(request).put())

    async def patch_user(self, user_id: str, request: dict) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(self._start().uri("/api/user").url_segment(user_id).set_json_body(request).patch())

    async def deactivate_user(self, user_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(self._start().uri("/api/user").url_segment(user_id).delete())

    async def reactivate_user(self, user_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(
            self._start().uri("/api/user").url_segment(user_id).url_parameter("reactivate", True).put()
        )

    async def delete_user(self, user_id: str) -> ClientResponse:
        """Permanently delete a user"""
        self._require(user_id, "user_id")
        return await self._send(
            self._start().uri("/api/user").url_segment(user_id).url_parameter("hardDelete", True).delete()
        )

    async def search_users(self, user_ids: Iterable[str]) -> ClientResponse:
        """Retrieve several users at once by id"""
        self._require(user_ids, "user_ids")
        return await self._send(self._start().uri("/api/user/search").url_parameter("ids", list(user_ids)).get())

    async def search_users_by_query(self, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/user/search").set_json_body(request).post())

    async def verify_email(self, verification_id: str) -> ClientResponse:
        self._require(verification_id, "verification_id")
        return await self._send(
            self._start_anonymous().uri("/api/user/verify-email").url_segment(verification_id).post()
        )

    async def forgot_password(self, request: dict) -> ClientResponse:
        """Begin the forgot password workflow for the login id in the request"""
        self._require(request, "request")
        return await self._send(self._start().uri("/api/user/forgot-password").set_json_body(request).post())

    async def change_password(self, change_password_id: str, request: dict) -> ClientResponse:
        """Complete a forgot password workflow using the id sent to the user"""
        self._require(change_password_id, "change_password_id")
        return await self._send(
            self._start_anonymous()
            .uri("/api/user/change-password")
            .url_segment(change_password_id)
            .set_json_body(request)
            .post()
        )

    # ------------------------------------------------------------------ #
    # Registrations                                                      #
    # ------------------------------------------------------------------ #
    async def register(self, user_id: str | None, request: dict) -> ClientResponse:
        """Register a user to an application, creating the user as well when user_id is None"""
        self._require(request, "request")
        return await self._send(
            self._start().uri("/api/user/registration").url_segment(user_id).set_json_body(request).post()
        )

    async def retrieve_registration(self, user_id: str, application_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        self._require(application_id, "application_id")
        return await self._send(
            self._start().uri("/api/user/registration").url_segment(user_id).url_segment(application_id).get()
        )

    async def update_registration(self, user_id: str, request: dict) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(
            self._start().uri("/api/user/registration").url_segment(user_id).set_json_body(request).put()
        )

    async def delete_registration(self, user_id: str, application_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        self._require(application_id, "application_id")
        return await self._send(
            self._start().uri("/api/user/registration").url_segment(user_id).url_segment(application_id).delete()
        )

    # ------------------------------------------------------------------ #
    # Groups                                                             #
    # ------------------------------------------------------------------ #
    async def create_group(self, group_id: str | None, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/group").url_segment(group_id).set_json_body(request).post())

    async def retrieve_group(self, group_id: str) -> ClientResponse:
        self._require(group_id, "group_id")
        return await self._send(self._start().uri("/api/group").url_segment(group_id).get())

    async def retrieve_groups(self) -> ClientResponse:
        return await self._send(self._start().uri("/api/group").get())

    async def update_group(self, group_id: str, request: dict) -> ClientResponse:
        self._require(group_id, "group_id")
        return await self._send(self._start().uri("/api/group").url_segment(group_id).set_json_body(request).put())

    async def delete_group(self, group_id: str) -> ClientResponse:
        self._require(group_id, "group_id")
        return await self._send(self._start().uri("/api/group").url_segment(group_id).delete())

    async def create_group_members(self, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/group/member").set_json_body(request).post())

    async def delete_group_members(self, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/group/member").set_json_body(request).delete())

    # ------------------------------------------------------------------ #
    # Login / logout                                                     #
    # ------------------------------------------------------------------ #
    async def login(self, request: dict) -> ClientResponse:
        """Authenticate a user with a login id and password"""
        self._require(request, "request")
        return await self._send(self._start().uri("/api/login").set_json_body(request).post())

    async def login_ping(
        self, user_id: str, application_id: str, caller_ip_address: str | None = None
    ) -> ClientResponse:
        """Record a login for a user authenticated outside of this service"""
        self._require(user_id, "user_id")
        self._require(application_id, "application_id")
        return await self._send(
            self._start()
            .uri("/api/login")
            .url_segment(user_id)
            .url_segment(application_id)
            .url_parameter("ipAddress", caller_ip_address)
            .put()
        )

    async def logout(self, global_logout: bool, refresh_token: str | None = None) -> ClientResponse:
        """
        Log a user out by revoking the refresh token

        Args:
            global_logout: Revoke every refresh token of the user, not just this one
            refresh_token: Refresh token to revoke; may be omitted when sent as a cookie
        """
        return await self._send(
            self._start_anonymous()
            .uri("/api/logout")
            .url_parameter("global", global_logout)
            .url_parameter("refreshToken", refresh_token)
            .post()
        )

    # ------------------------------------------------------------------ #
    # JWT                                                                #
    # ------------------------------------------------------------------ #
    async def issue_jwt(self, application_id: str, encoded_jwt: str) -> ClientResponse:
        """Exchange a valid JWT for one scoped to another application"""
        self._require(encoded_jwt, "encoded_jwt")
        return await self._send(
            self._start_anonymous()
            .uri("/api/jwt/issue")
            .authorization(f"Bearer {encoded_jwt}")
            .url_parameter("applicationId", application_id)
            .get()
        )

    async def exchange_refresh_token_for_jwt(self, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start_anonymous().uri("/api/jwt/refresh").set_json_body(request).post())

    async def validate_jwt(self, encoded_jwt: str) -> ClientResponse:
        """Ask the service whether a JWT is valid; a 401 means it is not"""
        self._require(encoded_jwt, "encoded_jwt")
        return await self._send(
            self._start_anonymous().uri("/api/jwt/validate").authorization(f"Bearer {encoded_jwt}").get()
        )

    async def retrieve_refresh_tokens(self, user_id: str) -> ClientResponse:
        self._require(user_id, "user_id")
        return await self._send(self._start().uri("/api/jwt/refresh").url_parameter("userId", user_id).get())

    async def revoke_refresh_token(
        self,
        token: str | None = None,
        user_id: str | None = None,
        application_id: str | None = None,
    ) -> ClientResponse:
        """Revoke a single refresh token, every token of a user, or every token of a user for an application"""
        return await self._send(
            self._start()
            .uri("/api/jwt/refresh")
            .url_parameter("token", token)
            .url_parameter("userId", user_id)
            .url_parameter("applicationId", application_id)
            .delete()
        )

    async def retrieve_jwt_public_key(self, key_id: str) -> ClientResponse:
        self._require(key_id, "key_id")
        return await self._send(self._start_anonymous().uri("/api/jwt/public-key").url_parameter("kid", key_id).get())

    async def retrieve_jwt_public_keys(self) -> ClientResponse:
        return await self._send(self._start_anonymous().uri("/api/jwt/public-key").get())

    # ------------------------------------------------------------------ #
    # OAuth 2.0 / OpenID Connect                                         #
    # ------------------------------------------------------------------ #
    async def exchange_oauth_code_for_access_token(
        self,
        code: str,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
    ) -> ClientResponse:
        """Exchange an authorization code for an access token (authorization_code grant)"""
        self._require(code, "code")
        return await self._send(
            self._start_anonymous()
            .uri("/oauth2/token")
            .set_form_body(
                {
                    "code": code,
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                }
            )
            .post()
        )

    async def exchange_refresh_token_for_access_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str | None = None,
        scope: str | None = None,
    ) -> ClientResponse:
        self._require(refresh_token, "refresh_token")
        return await self._send(
            self._start_anonymous()
            .uri("/oauth2/token")
            .set_form_body(
                {
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "scope": scope,
                }
            )
            .post()
        )

    async def exchange_user_credentials_for_access_token(
        self,
        username: str,
        password: str,
        client_id: str,
        client_secret: str | None = None,
        scope: str | None = None,
    ) -> ClientResponse:
        """Resource owner password credentials grant"""
        self._require(username, "username")
        return await self._send(
            self._start_anonymous()
            .uri("/oauth2/token")
            .set_form_body(
                {
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "grant_type": "password",
                    "username": username,
                    "password": password,
                    "scope": scope,
                }
            )
            .post()
        )

    async def client_credentials_grant(
        self, client_id: str | None, client_secret: str | None, scope: str | None = None
    ) -> ClientResponse:
        """Client credentials grant; the client authenticates with HTTP Basic"""
        return await self._send(
            self._start_anonymous()
            .uri("/oauth2/token")
            .basic_authorization(client_id, client_secret)
            .set_form_body({"grant_type": "client_credentials", "scope": scope})
            .post()
        )

    async def retrieve_json_web_key_set(self) -> ClientResponse:
        return await self._send(self._start_anonymous().uri("/.well-known/jwks.json").get())

    async def retrieve_open_id_configuration(self) -> ClientResponse:
        return await self._send(self._start_anonymous().uri("/.well-known/openid-configuration").get())

    # ------------------------------------------------------------------ #
    # System configuration                                               #
    # ------------------------------------------------------------------ #
    async def retrieve_system_configuration(self) -> ClientResponse:
        return await self._send(self._start().uri("/api/system-configuration").get())

    async def update_system_configuration(self, request: dict) -> ClientResponse:
        self._require(request, "request")
        return await self._send(self._start().uri("/api/system-configuration").set_json_body(request).put())

    # ------------------------------------------------------------------ #
    # Request scoping                                                    #
    # ------------------------------------------------------------------ #
    def _start(self) -> RESTRequest:
        """Start a request authenticated with the API key"""
        request = self._start_anonymous()
        if self.api_key is not None:
            request.authorization(self.api_key)
        return request

    def _start_anonymous(self) -> RESTRequest:
        """Start a request without an Authorization header"""
        request = (
            RESTRequest(transport=self._transport)
            .set_url(self.host)
            .set_certificate(self.certificate)
            .set_key(self.key)
        )
        if self.tenant_id is not None:
            request.header(TENANT_ID_HEADER, self.tenant_id)
        return request

    @staticmethod
    async def _send(request: RESTRequest) -> ClientResponse:
        response = await request.go()
        if response.was_successful():
            return response
        raise ClientResponseError(response)

    @staticmethod
    def _require(value: Any, name: str) -> None:
        if value is None:
            raise MissingRequiredArgumentError(name)
