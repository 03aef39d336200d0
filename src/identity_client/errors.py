from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .http.response import ClientResponse


class ErrorCode(Enum):
    """Standard error codes raised locally by the identity client"""

    # Precondition errors
    MISSING_REQUIRED_ARGUMENT = "CLIENT_001"
    REQUEST_ALREADY_EXECUTED = "CLIENT_002"

    # Remote errors
    REQUEST_FAILED = "REMOTE_001"
    TRANSPORT_FAILED = "REMOTE_002"


class IdentityClientError(Exception):
    """Base exception for identity client errors"""

    def __init__(self, message: str, error_code: ErrorCode | None = None, details: dict | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}
        self.message = message

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {self.message}"
        return self.message


class MissingRequiredArgumentError(IdentityClientError, ValueError):
    """Raised before any network call when a structurally required argument is None"""

    def __init__(self, argument_name: str, details: dict | None = None):
        self.argument_name = argument_name
        message = f"Required argument '{argument_name}' is missing"
        super().__init__(message, ErrorCode.MISSING_REQUIRED_ARGUMENT, details)


class RequestAlreadyExecutedError(IdentityClientError, RuntimeError):
    """Raised when a request builder is mutated or executed after it was sent"""

    def __init__(self, message: str = "Request has already been executed", details: dict | None = None):
        super().__init__(message, ErrorCode.REQUEST_ALREADY_EXECUTED, details)


class ClientResponseError(IdentityClientError):
    """Raised by the client facade when a call did not succeed.

    The full response envelope is attached so callers can branch on the
    status code and inspect the error body or transport exception.
    """

    def __init__(self, response: "ClientResponse"):
        self.response = response
        if response.exception is not None:
            error_code = ErrorCode.TRANSPORT_FAILED
            message = f"Request failed before a response was received: {response.exception}"
        else:
            error_code = ErrorCode.REQUEST_FAILED
            message = f"Request failed with status {response.status_code}"
        super().__init__(message, error_code, {"status_code": response.status_code})

    @property
    def status_code(self) -> int | None:
        return self.response.status_code

    @property
    def error_response(self):
        return self.response.error_response
