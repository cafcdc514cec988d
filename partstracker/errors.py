"""Exception hierarchy shared by the tracker layers."""

from __future__ import annotations


class TrackerError(RuntimeError):
    """Base class for every error raised by the tracker."""


class NotAuthenticated(TrackerError):
    """Raised when no user identity can be resolved for the current session."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class StorageError(TrackerError):
    """Raised by a storage backend when a read or write fails."""


class AccountError(TrackerError):
    """Raised by the local account flow on duplicate usernames or bad credentials."""


__all__ = ["AccountError", "NotAuthenticated", "StorageError", "TrackerError"]
