"""Storage backend interface shared by the remote and local implementations.

Every method is a single round trip against the underlying store and raises
:class:`~partstracker.errors.StorageError` when that round trip fails. The
repositories own the multi-step flows (upsert decision, cascades,
compensating deletes) so both backends expose identical behaviour.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from partstracker.schemas import Part, PartOrder, PCSetup, SetupPart, SetupPartInput, UserProfile


class StorageBackend(ABC):
    mode: str = "abstract"

    # parts

    @abstractmethod
    def list_parts(self, user_id: str) -> list[Part]:
        """Return the user's parts ordered by ``sort_order`` ascending."""

    @abstractmethod
    def find_part(self, user_id: str, component: str) -> Optional[Part]:
        """Return the part stored for ``(user_id, component)`` if any."""

    @abstractmethod
    def insert_part(
        self, user_id: str, component: str, name: str, amount: Decimal, sort_order: int
    ) -> Part:
        ...

    @abstractmethod
    def update_part(self, user_id: str, part_id: str, values: Mapping[str, Any]) -> Part:
        ...

    @abstractmethod
    def upsert_parts(self, user_id: str, parts: Sequence[PartOrder]) -> None:
        """Insert or replace every record keyed by ``id`` in one write."""

    @abstractmethod
    def delete_part(self, user_id: str, part_id: str) -> int:
        """Delete one part owned by ``user_id``; return the number of removed rows."""

    @abstractmethod
    def delete_all_parts(self, user_id: str) -> int:
        ...

    @abstractmethod
    def insert_parts(self, user_id: str, parts: Sequence[SetupPartInput]) -> list[Part]:
        """Bulk insert parts, assigning ``sort_order`` from their position."""

    # profiles

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    def upsert_profile(self, user_id: str, username: str, currency: str) -> UserProfile:
        ...

    # setups

    @abstractmethod
    def list_setups(self, user_id: str) -> list[PCSetup]:
        """Return the user's setups, newest first."""

    @abstractmethod
    def insert_setup(
        self, user_id: str, name: str, description: str, total_amount: Decimal
    ) -> PCSetup:
        ...

    @abstractmethod
    def update_setup(
        self, user_id: str, setup_id: str, name: str, description: str, total_amount: Decimal
    ) -> int:
        """Update the mutable fields of a setup; return the number of matched rows."""

    @abstractmethod
    def delete_setup(self, user_id: str, setup_id: str) -> int:
        ...

    @abstractmethod
    def list_setup_parts(self, user_id: str, setup_id: str) -> list[SetupPart]:
        """Return the children of a setup, oldest first."""

    @abstractmethod
    def insert_setup_parts(
        self, user_id: str, setup_id: str, parts: Sequence[SetupPartInput]
    ) -> None:
        ...

    @abstractmethod
    def delete_setup_parts(self, user_id: str, setup_id: str) -> int:
        ...


__all__ = ["StorageBackend"]
