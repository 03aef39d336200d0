"""Local token validity helpers."""

from .revocation import TokenRevocationTracker, get_revocation_tracker

__all__ = [
    "TokenRevocationTracker",
    "get_revocation_tracker",
]
