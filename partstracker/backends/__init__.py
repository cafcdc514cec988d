"""Storage backends selected once per resolved session."""

from .base import StorageBackend
from .local import LocalBackend
from .remote import RemoteBackend

__all__ = ["LocalBackend", "RemoteBackend", "StorageBackend"]
