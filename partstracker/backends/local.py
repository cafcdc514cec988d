"""Storage backend mirroring the remote tables inside local storage.

All data lives in the ``users`` document: each user record embeds its
``parts`` array and a ``setups`` array whose entries embed their own
``parts``. Every operation is a read-modify-write of that whole document.
Entries that are not objects are dropped and scalar fields are coerced, so a
hand-edited document reads as the closest well-formed one.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

from partstracker import schemas
from partstracker.errors import StorageError
from partstracker.local_store import USERS_KEY, LocalStorage

from .base import StorageBackend

LOG = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return datetime.now(tz=UTC)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return datetime.now(tz=UTC)


def _text(value: object, default: str = "") -> str:
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def _entries(container: dict, key: str) -> list[dict]:
    """Return the object entries stored under ``key``, dropping anything else in place."""

    value = container.get(key)
    entries = [entry for entry in value if isinstance(entry, dict)] if isinstance(value, list) else []
    container[key] = entries
    return entries


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class LocalBackend(StorageBackend):
    mode = "local"

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage

    # document helpers

    def _load_users(self) -> list[dict]:
        users = self.storage.get_json(USERS_KEY, [])
        if not isinstance(users, list):
            LOG.warning("Local users document is not a list; treating it as empty")
            return []
        return [user for user in users if isinstance(user, dict)]

    def _save_users(self, users: list[dict]) -> None:
        self.storage.set_json(USERS_KEY, users)

    def _find_user(self, users: list[dict], user_id: str) -> Optional[dict]:
        return next((user for user in users if _text(user.get("id")) == user_id), None)

    def _require_user(self, users: list[dict], user_id: str) -> dict:
        user = self._find_user(users, user_id)
        if user is None:
            raise StorageError(f"Local user {user_id} not found")
        return user

    def _to_part(self, raw: dict, user_id: str, index: int) -> schemas.Part:
        sort_order = raw.get("sort_order")
        if not isinstance(sort_order, int) or isinstance(sort_order, bool):
            sort_order = index
        return schemas.Part(
            id=_text(raw.get("id"), f"{user_id}-{index}"),
            user_id=user_id,
            component=_text(raw.get("component"), "component"),
            name=_text(raw.get("name")),
            amount=schemas.coerce_amount(raw.get("amount")),
            created_at=_parse_timestamp(raw.get("created_at")),
            updated_at=_parse_timestamp(raw.get("updated_at")),
            sort_order=sort_order,
        )

    def _annotated_parts(self, user: dict, user_id: str) -> list[schemas.Part]:
        parts = [self._to_part(raw, user_id, index) for index, raw in enumerate(_entries(user, "parts"))]
        return sorted(parts, key=lambda part: part.sort_order)

    def _new_part(self, user_id: str, component: str, name: str, amount: Decimal, sort_order: int) -> dict:
        now = _now_iso()
        record = schemas.LocalPart(
            id=uuid4().hex,
            user_id=user_id,
            component=component,
            name=name,
            amount=float(amount),
            created_at=now,
            updated_at=now,
            sort_order=sort_order,
        )
        return record.model_dump()

    # parts

    def list_parts(self, user_id: str) -> list[schemas.Part]:
        user = self._find_user(self._load_users(), user_id)
        if user is None:
            return []
        return self._annotated_parts(user, user_id)

    def find_part(self, user_id: str, component: str) -> Optional[schemas.Part]:
        user = self._find_user(self._load_users(), user_id)
        if user is None:
            return None
        return next((part for part in self._annotated_parts(user, user_id) if part.component == component), None)

    def insert_part(
        self, user_id: str, component: str, name: str, amount: Decimal, sort_order: int
    ) -> schemas.Part:
        users = self._load_users()
        user = self._require_user(users, user_id)
        parts = _entries(user, "parts")
        record = self._new_part(user_id, component, name, amount, sort_order)
        parts.append(record)
        self._save_users(users)
        return self._to_part(record, user_id, len(parts) - 1)

    def update_part(self, user_id: str, part_id: str, values: Mapping[str, Any]) -> schemas.Part:
        users = self._load_users()
        user = self._require_user(users, user_id)
        for index, raw in enumerate(_entries(user, "parts")):
            if _text(raw.get("id")) == part_id:
                raw.update({field: _to_json_value(value) for field, value in values.items()})
                self._save_users(users)
                return self._to_part(raw, user_id, index)
        raise StorageError(f"Part {part_id} not found")

    def upsert_parts(self, user_id: str, parts: Sequence[schemas.PartOrder]) -> None:
        users = self._load_users()
        user = self._require_user(users, user_id)
        stored = _entries(user, "parts")
        by_id = {_text(raw.get("id")): raw for raw in stored}
        foreign = {
            _text(raw.get("id"))
            for other in users
            if other is not user
            for raw in _entries(other, "parts")
        }
        taken = sorted(record.id for record in parts if record.id in foreign and record.id not in by_id)
        if taken:
            raise StorageError(f"Parts {', '.join(taken)} belong to another user")
        now = _now_iso()
        for record in parts:
            values = {field: _to_json_value(value) for field, value in record.model_dump().items()}
            values["user_id"] = user_id
            values["updated_at"] = now
            existing = by_id.get(record.id)
            if existing is not None:
                existing.update(values)
            else:
                values["created_at"] = now
                stored.append(values)
                by_id[record.id] = values
        annotated = [(raw.get("sort_order"), index, raw) for index, raw in enumerate(stored)]
        user["parts"] = [
            raw
            for _order, _index, raw in sorted(
                annotated,
                key=lambda item: (item[0] if isinstance(item[0], int) else item[1], item[1]),
            )
        ]
        self._save_users(users)

    def delete_part(self, user_id: str, part_id: str) -> int:
        users = self._load_users()
        user = self._find_user(users, user_id)
        if user is None:
            return 0
        parts = _entries(user, "parts")
        kept = [raw for raw in parts if _text(raw.get("id")) != part_id]
        removed = len(parts) - len(kept)
        if removed:
            user["parts"] = kept
            self._save_users(users)
        return removed

    def delete_all_parts(self, user_id: str) -> int:
        users = self._load_users()
        user = self._require_user(users, user_id)
        removed = len(_entries(user, "parts"))
        user["parts"] = []
        self._save_users(users)
        return removed

    def insert_parts(self, user_id: str, parts: Sequence[schemas.SetupPartInput]) -> list[schemas.Part]:
        users = self._load_users()
        user = self._require_user(users, user_id)
        stored = _entries(user, "parts")
        created = []
        for index, part in enumerate(parts):
            record = self._new_part(user_id, part.component, part.name, part.amount, index)
            stored.append(record)
            created.append(self._to_part(record, user_id, len(stored) - 1))
        self._save_users(users)
        return created

    # profiles

    def get_profile(self, user_id: str) -> Optional[schemas.UserProfile]:
        user = self._find_user(self._load_users(), user_id)
        if user is None:
            return None
        return schemas.UserProfile(
            id=user_id,
            username=_text(user.get("username")),
            currency=_text(user.get("currency")) or None,
        )

    def upsert_profile(self, user_id: str, username: str, currency: str) -> schemas.UserProfile:
        users = self._load_users()
        user = self._require_user(users, user_id)
        user["currency"] = currency
        if not _text(user.get("username")):
            user["username"] = username
        self._save_users(users)
        return schemas.UserProfile(id=user_id, username=_text(user.get("username")), currency=currency)

    # setups

    def _find_setup(self, user: dict, setup_id: str) -> Optional[dict]:
        return next((setup for setup in _entries(user, "setups") if _text(setup.get("id")) == setup_id), None)

    def _to_setup(self, raw: dict, user_id: str) -> schemas.PCSetup:
        description = raw.get("description")
        return schemas.PCSetup(
            id=_text(raw.get("id")),
            user_id=user_id,
            name=_text(raw.get("name")),
            description=_text(description) if description is not None else None,
            total_amount=schemas.coerce_amount(raw.get("total_amount")),
            created_at=_parse_timestamp(raw.get("created_at")),
            updated_at=_parse_timestamp(raw.get("updated_at")),
        )

    def list_setups(self, user_id: str) -> list[schemas.PCSetup]:
        user = self._find_user(self._load_users(), user_id)
        if user is None:
            return []
        setups = [self._to_setup(raw, user_id) for raw in reversed(_entries(user, "setups"))]
        return sorted(setups, key=lambda setup: setup.created_at, reverse=True)

    def insert_setup(
        self, user_id: str, name: str, description: str, total_amount: Decimal
    ) -> schemas.PCSetup:
        users = self._load_users()
        user = self._require_user(users, user_id)
        now = _now_iso()
        record = {
            "id": uuid4().hex,
            "user_id": user_id,
            "name": name,
            "description": description,
            "total_amount": float(total_amount),
            "created_at": now,
            "updated_at": now,
            "parts": [],
        }
        _entries(user, "setups").append(record)
        self._save_users(users)
        return self._to_setup(record, user_id)

    def update_setup(
        self, user_id: str, setup_id: str, name: str, description: str, total_amount: Decimal
    ) -> int:
        users = self._load_users()
        user = self._find_user(users, user_id)
        setup = self._find_setup(user, setup_id) if user is not None else None
        if setup is None:
            return 0
        setup.update(
            name=name,
            description=description,
            total_amount=float(total_amount),
            updated_at=_now_iso(),
        )
        self._save_users(users)
        return 1

    def delete_setup(self, user_id: str, setup_id: str) -> int:
        users = self._load_users()
        user = self._find_user(users, user_id)
        if user is None or self._find_setup(user, setup_id) is None:
            return 0
        user["setups"] = [setup for setup in _entries(user, "setups") if _text(setup.get("id")) != setup_id]
        self._save_users(users)
        return 1

    def list_setup_parts(self, user_id: str, setup_id: str) -> list[schemas.SetupPart]:
        user = self._find_user(self._load_users(), user_id)
        setup = self._find_setup(user, setup_id) if user is not None else None
        if setup is None:
            return []
        children = [
            schemas.SetupPart(
                id=_text(raw.get("id"), f"{setup_id}-{index}"),
                setup_id=setup_id,
                component=_text(raw.get("component"), "component"),
                name=_text(raw.get("name")),
                amount=schemas.coerce_amount(raw.get("amount")),
                created_at=_parse_timestamp(raw.get("created_at")),
            )
            for index, raw in enumerate(_entries(setup, "parts"))
        ]
        return sorted(children, key=lambda child: child.created_at)

    def insert_setup_parts(
        self, user_id: str, setup_id: str, parts: Sequence[schemas.SetupPartInput]
    ) -> None:
        if not parts:
            return
        users = self._load_users()
        user = self._require_user(users, user_id)
        setup = self._find_setup(user, setup_id)
        if setup is None:
            raise StorageError(f"Setup {setup_id} not found")
        now = _now_iso()
        _entries(setup, "parts").extend(
            {
                "id": uuid4().hex,
                "setup_id": setup_id,
                "component": part.component,
                "name": part.name,
                "amount": float(part.amount),
                "created_at": now,
            }
            for part in parts
        )
        self._save_users(users)

    def delete_setup_parts(self, user_id: str, setup_id: str) -> int:
        users = self._load_users()
        user = self._find_user(users, user_id)
        setup = self._find_setup(user, setup_id) if user is not None else None
        if setup is None:
            return 0
        removed = len(_entries(setup, "parts"))
        setup["parts"] = []
        self._save_users(users)
        return removed


__all__ = ["LocalBackend"]
