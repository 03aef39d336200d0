# Assumptions:
# - Revocations are keyed by the token subject (sub claim)
# - Signatures, issuer and audience are verified elsewhere, never here
# - Expired revocation entries are ignored but not purged

import threading
import time
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any

import jwt


class TokenRevocationTracker:
    """Local record of subjects whose tokens were explicitly revoked"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._revoked: dict[str, float] = {}  # subject -> revoked until (epoch seconds)

    def revoke(self, subject_id: str, duration_seconds: float) -> None:
        """Treat tokens for subject_id as invalid for the next duration_seconds"""
        with self._lock:
            self._revoked[subject_id] = self._clock() + duration_seconds

    def is_valid(self, claims: Mapping[str, Any]) -> bool:
        """
        Check a decoded token against the revocation record

        Returns False only when the subject is revoked and the revocation
        window has not elapsed yet.
        """
        subject = claims.get("sub")
        if subject is None:
            return True

        with self._lock:
            revoked_until = self._revoked.get(subject)

        if revoked_until is None:
            return True
        return revoked_until <= self._clock()

    def is_token_valid(self, encoded_jwt: str) -> bool:
        """Decode an encoded JWT without verifying it and check its subject"""
        claims = jwt.decode(encoded_jwt, options={"verify_signature": False})
        return self.is_valid(claims)

    def clear(self):
        """Forget every revocation"""
        with self._lock:
            self._revoked.clear()


@lru_cache()
def get_revocation_tracker() -> TokenRevocationTracker:
    """Get the process-wide revocation tracker"""
    return TokenRevocationTracker()
