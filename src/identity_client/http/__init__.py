"""HTTP request builder and response envelope."""

from .request import RESTRequest, ResponseHandler
from .response import ClientResponse

__all__ = [
    "RESTRequest",
    "ResponseHandler",
    "ClientResponse",
]
