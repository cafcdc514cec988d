"""Key-value store persisted as a single JSON document on disk.

Values are strings, mirroring browser ``localStorage``. Every read and write
loads or rewrites the whole document; there is no locking, so concurrent
writers follow last-writer-wins.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from partstracker.errors import StorageError

LOG = logging.getLogger(__name__)

USERS_KEY = "users"
CURRENT_USER_KEY = "user"


class LocalStorage:
    """Whole-document JSON storage; ``path=None`` keeps the document in memory."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._memory: dict[str, str] = {}

    def _read(self) -> dict[str, str]:
        if self.path is None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Unable to read local storage at {self.path}") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Local storage at {self.path} is not a mapping")
        return {str(key): str(value) for key, value in payload.items()}

    def _write(self, payload: dict[str, str]) -> None:
        if self.path is None:
            self._memory = dict(payload)
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to write local storage at {self.path}") from exc

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        payload = self._read()
        payload[key] = value
        self._write(payload)

    def remove_item(self, key: str) -> None:
        payload = self._read()
        if payload.pop(key, None) is not None:
            self._write(payload)

    def clear(self) -> None:
        self._write({})

    # JSON helpers

    def get_json(self, key: str, default: object = None) -> object:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            LOG.warning("Discarding unparsable local storage entry %r", key)
            return default

    def set_json(self, key: str, value: object) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False, default=str))


__all__ = ["CURRENT_USER_KEY", "USERS_KEY", "LocalStorage"]
