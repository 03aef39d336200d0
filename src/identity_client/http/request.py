# Assumptions:
# - One RESTRequest per remote call; it is discarded after go()
# - Bodies are either JSON or application/x-www-form-urlencoded
# - Client certificate and key are PEM file paths, used only for https URLs

import base64
import json
import ssl
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any
from urllib.parse import urlencode, urlsplit

import httpx
import structlog
from opentelemetry.trace import SpanKind

from ..errors import MissingRequiredArgumentError, RequestAlreadyExecutedError
from ..logging.setup import get_correlation_id
from ..telemetry import get_tracer
from .response import ClientResponse

logger = structlog.get_logger(__name__)

ResponseHandler = Callable[[ClientResponse], Any]

CORRELATION_ID_HEADER = "X-Correlation-ID"
TRANSPORT_FAILURE_STATUS = 500


@lru_cache()
def client_ssl_context(certificate: str, key: str | None) -> ssl.SSLContext:
    """
    Build the TLS context for a client certificate/key pair

    The PEM files are read from disk once per pair and the context is reused
    by later requests. Failures are not cached, so a missing file is retried
    on the next request.
    """
    context = ssl.create_default_context()
    context.load_cert_chain(certfile=certificate, keyfile=key)
    return context


def _stringify(value: Any) -> str:
    # The remote service expects lowercase JSON-style booleans in query strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RESTRequest:
    """Fluent builder for a single call to a RESTful web service.

    Every configuration method returns the builder so calls can be chained::

        response = await (
            RESTRequest()
            .set_url("https://auth.example.com")
            .uri("/api/user")
            .url_segment(user_id)
            .authorization(api_key)
            .get()
            .go()
        )

    ``go()`` consumes the builder; any further mutation or a second execution
    raises :class:`RequestAlreadyExecutedError`.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.headers: dict[str, str] = {}
        self.parameters: dict[str, list[str]] | None = None
        self.url: str | None = None
        self.body: bytes | None = None
        self.certificate: str | None = None
        self.key: str | None = None
        self.method: str | None = None
        self._transport = transport
        self._executed = False

    # ------------------------------------------------------------------ #
    # Authorization                                                      #
    # ------------------------------------------------------------------ #
    def authorization(self, value: str) -> "RESTRequest":
        """Set the Authorization header verbatim (API key or 'Bearer <token>')"""
        return self.header("Authorization", value)

    def basic_authorization(self, username: str | None, password: str | None) -> "RESTRequest":
        """Set HTTP Basic authorization; skipped unless both values are present"""
        self._ensure_not_executed()
        if username and password:
            credentials = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
            self.header("Authorization", f"Basic {credentials}")
        return self

    # ------------------------------------------------------------------ #
    # Body                                                               #
    # ------------------------------------------------------------------ #
    def set_json_body(self, body: Any) -> "RESTRequest":
        """Serialize the body as JSON and set the matching content headers"""
        self._ensure_not_executed()
        self.body = json.dumps(body).encode("utf-8")
        self.header("Content-Type", "application/json")
        self.header("Content-Length", len(self.body))
        return self

    def set_form_body(self, form: Mapping[str, Any]) -> "RESTRequest":
        """Serialize the body as application/x-www-form-urlencoded, dropping None values"""
        self._ensure_not_executed()
        fields = [(name, _stringify(value)) for name, value in form.items() if value is not None]
        self.body = urlencode(fields).encode("ascii")
        self.header("Content-Type", "application/x-www-form-urlencoded")
        return self

    # ------------------------------------------------------------------ #
    # TLS client authentication                                          #
    # ------------------------------------------------------------------ #
    def set_certificate(self, certificate: str | None) -> "RESTRequest":
        self._ensure_not_executed()
        self.certificate = certificate
        return self

    def set_key(self, key: str | None) -> "RESTRequest":
        self._ensure_not_executed()
        self.key = key
        return self

    # ------------------------------------------------------------------ #
    # HTTP method                                                        #
    # ------------------------------------------------------------------ #
    def delete(self) -> "RESTRequest":
        return self._set_method("DELETE")

    def get(self) -> "RESTRequest":
        return self._set_method("GET")

    def patch(self) -> "RESTRequest":
        return self._set_method("PATCH")

    def post(self) -> "RESTRequest":
        return self._set_method("POST")

    def put(self) -> "RESTRequest":
        return self._set_method("PUT")

    def _set_method(self, method: str) -> "RESTRequest":
        self._ensure_not_executed()
        self.method = method
        return self

    # ------------------------------------------------------------------ #
    # Headers                                                            #
    # ------------------------------------------------------------------ #
    def header(self, name: str, value: Any) -> "RESTRequest":
        """Set a header, replacing any previous value for the same name"""
        self._ensure_not_executed()
        self.headers[name] = str(value)
        return self

    def set_headers(self, headers: Mapping[str, Any]) -> "RESTRequest":
        """Replace every header at once"""
        self._ensure_not_executed()
        self.headers = {name: str(value) for name, value in headers.items()}
        return self

    # ------------------------------------------------------------------ #
    # URL                                                                #
    # ------------------------------------------------------------------ #
    def set_url(self, url: str | None) -> "RESTRequest":
        """Set the absolute origin (plus optional path prefix) of the request"""
        self._ensure_not_executed()
        if url is not None:
            self.url = url
        return self

    def uri(self, uri: str | None) -> "RESTRequest":
        """Append a path fragment, joining it to the URL with exactly one '/'"""
        self._ensure_not_executed()
        if uri is None or self.url is None:
            return self

        if self.url.endswith("/") and uri.startswith("/"):
            self.url = self.url + uri[1:]
        elif not self.url.endswith("/") and not uri.startswith("/"):
            self.url = f"{self.url}/{uri}"
        else:
            self.url = self.url + uri
        return self

    def url_segment(self, segment: Any) -> "RESTRequest":
        """Append a path segment; None segments are skipped"""
        self._ensure_not_executed()
        if segment is None or self.url is None:
            return self

        if not self.url.endswith("/"):
            self.url = self.url + "/"
        self.url = self.url + str(segment)
        return self

    def url_parameter(self, name: str, value: Any) -> "RESTRequest":
        """Add a query parameter.

        None values are omitted entirely. Lists, tuples, sets and mapping
        values add one repeated ``name=value`` pair per element. Repeated
        calls with the same name accumulate.
        """
        self._ensure_not_executed()
        if value is None:
            return self

        if self.parameters is None:
            self.parameters = {}
        values = self.parameters.setdefault(name, [])

        if isinstance(value, Mapping):
            items = list(value.values())
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = list(value)
        else:
            items = [value]

        values.extend(_stringify(item) for item in items if item is not None)
        return self

    def full_url(self) -> str | None:
        """Return the URL including the serialized query string"""
        if self.url is None:
            return None

        pairs = [(name, value) for name, values in (self.parameters or {}).items() for value in values]
        if not pairs:
            return self.url

        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(pairs)}"

    # ------------------------------------------------------------------ #
    # Execution                                                          #
    # ------------------------------------------------------------------ #
    async def go(self, response_handler: ResponseHandler | None = None) -> ClientResponse:
        """
        Send the request and return the populated response envelope

        Transport failures never raise; they are reported through
        ``ClientResponse.exception`` with a status code of 500. When a
        ``response_handler`` is given it is invoked exactly once with the
        envelope before it is returned.
        """
        self._ensure_not_executed()
        url = self.full_url()
        if url is None:
            raise MissingRequiredArgumentError("url")
        self._executed = True

        method = self.method or "GET"
        headers = dict(self.headers)
        correlation_id = get_correlation_id()
        if correlation_id and CORRELATION_ID_HEADER not in headers:
            headers[CORRELATION_ID_HEADER] = correlation_id

        client_response = ClientResponse()
        endpoint = url.split("?", 1)[0]

        with get_tracer().start_as_current_span("identity_client.request", kind=SpanKind.CLIENT) as span:
            span.set_attribute("http.method", method)
            span.set_attribute("http.url", endpoint)

            try:
                async with httpx.AsyncClient(**self._client_options(url)) as client:
                    logger.debug("Making HTTP request", method=method, url=endpoint)
                    response = await client.request(method, url, headers=headers, content=self.body)
            except (httpx.RequestError, httpx.InvalidURL, OSError) as e:
                # InvalidURL: host or port that cannot be parsed, so nothing was sent
                client_response.status_code = TRANSPORT_FAILURE_STATUS
                client_response.exception = e
                logger.debug(
                    "HTTP request did not receive a response",
                    method=method,
                    url=endpoint,
                    error=str(e),
                )
            else:
                client_response.status_code = response.status_code
                body = self._parse_body(response)
                if client_response.was_successful():
                    client_response.success_response = body
                else:
                    client_response.error_response = body
                logger.debug(
                    "HTTP response received",
                    method=method,
                    url=endpoint,
                    status_code=response.status_code,
                )

            span.set_attribute("http.status_code", client_response.status_code)

        if response_handler is not None:
            response_handler(client_response)
        return client_response

    def _client_options(self, url: str) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self._transport is not None:
            options["transport"] = self._transport

        if urlsplit(url).scheme == "https" and self.certificate:
            options["verify"] = client_ssl_context(self.certificate, self.key)
        return options

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Unparsable bodies are passed through as text
            return response.text

    def _ensure_not_executed(self) -> None:
        if self._executed:
            raise RequestAlreadyExecutedError()
