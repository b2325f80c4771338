"""Exception hierarchy shared by the store, cache workflows and HTTP layer."""
from __future__ import annotations


class TrackerError(RuntimeError):
    """Base class for time tracker failures."""


class NotFoundError(TrackerError):
    """Raised when a user, task or task instance does not exist."""


class UserNotCachedError(NotFoundError):
    """Raised when a store write succeeded but the user is missing from the cache.

    The store is left as written; the cache catches up on the next full reload.
    """

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} is not present in the cache")
        self.user_id = user_id


class InvalidInputError(TrackerError, ValueError):
    """Raised for malformed identifiers, dates or passport strings."""


class UpstreamError(TrackerError):
    """Raised when the database or the user info service fails."""


class StorageError(UpstreamError):
    """Raised when the database cannot complete an operation."""


__all__ = [
    "InvalidInputError",
    "NotFoundError",
    "StorageError",
    "TrackerError",
    "UpstreamError",
    "UserNotCachedError",
]
