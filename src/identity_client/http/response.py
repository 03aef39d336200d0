from dataclasses import dataclass
from typing import Any


@dataclass
class ClientResponse:
    """Outcome of exactly one HTTP round trip.

    ``success_response`` is populated for 2xx responses, ``error_response``
    for every other response that was actually received, and ``exception``
    when no response arrived at all (in which case ``status_code`` is 500).
    """

    status_code: int | None = None
    success_response: Any = None
    error_response: Any = None
    exception: BaseException | None = None

    def was_successful(self) -> bool:
        """Check if the call completed with a 2xx status and no transport failure"""
        if self.status_code is None:
            return False
        return 200 <= self.status_code <= 299 and self.exception is None
