"""
Client library for the identity service REST API.

This library provides:
- A fluent HTTP request builder and a uniform response envelope
- An asynchronous client with one method per remote operation
- Local token revocation tracking
- Logging, configuration and telemetry helpers
"""

__version__ = "1.0.0"
__author__ = "BPT Team"

from .auth import TokenRevocationTracker, get_revocation_tracker
from .client import TENANT_ID_HEADER, IdentityClient
from .errors import (
    ClientResponseError,
    ErrorCode,
    IdentityClientError,
    MissingRequiredArgumentError,
    RequestAlreadyExecutedError,
)
from .http import ClientResponse, RESTRequest

__all__ = [
    "IdentityClient",
    "TENANT_ID_HEADER",
    "RESTRequest",
    "ClientResponse",
    "TokenRevocationTracker",
    "get_revocation_tracker",
    "ErrorCode",
    "IdentityClientError",
    "ClientResponseError",
    "MissingRequiredArgumentError",
    "RequestAlreadyExecutedError",
]
