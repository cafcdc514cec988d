"""Authentication boundary and the local placeholder account flow.

:class:`AuthClient` holds the remote auth state of the process (who is
signed in) and notifies subscribers when it changes. Token management is
left to whatever signs users in.

:class:`LocalAccounts` is the local register/login flow. Passwords are
compared in plain text against the local users document; it is a
placeholder, not a security design.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Optional
from uuid import uuid4

from partstracker.config import LOCAL_REGISTER_CURRENCY
from partstracker.errors import AccountError, StorageError
from partstracker.local_store import CURRENT_USER_KEY, USERS_KEY, LocalStorage
from partstracker.schemas import LocalUser

LOG = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AuthSession:
    user: AuthUser
    access_token: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


AuthListener = Callable[[str, Optional[AuthSession]], None]


class Subscription:
    def __init__(self, client: "AuthClient", listener: AuthListener) -> None:
        self._client = client
        self._listener = listener

    def unsubscribe(self) -> None:
        self._client._listeners = [item for item in self._client._listeners if item is not self._listener]


class AuthClient:
    """In-process auth state with session-change notifications."""

    def __init__(self) -> None:
        self._session: Optional[AuthSession] = None
        self._listeners: list[AuthListener] = []

    def get_session(self) -> Optional[AuthSession]:
        return self._session

    def get_user(self) -> Optional[AuthUser]:
        return self._session.user if self._session is not None else None

    def sign_in(self, user_id: str, email: Optional[str] = None, access_token: Optional[str] = None) -> AuthSession:
        self._session = AuthSession(user=AuthUser(id=user_id, email=email), access_token=access_token)
        self._notify(SIGNED_IN, self._session)
        return self._session

    def sign_out(self) -> None:
        self._session = None
        self._notify(SIGNED_OUT, None)

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _notify(self, event: str, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)


class LocalAccounts:
    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage

    def _users(self) -> list[dict]:
        users = self.storage.get_json(USERS_KEY, [])
        if not isinstance(users, list):
            return []
        return [user for user in users if isinstance(user, dict)]

    def register(self, username: str, password: str) -> LocalUser:
        users = self._users()
        if any(user.get("username") == username for user in users):
            raise AccountError("Username already exists")
        user = LocalUser(
            id=uuid4().hex,
            username=username,
            password=password,
            currency=LOCAL_REGISTER_CURRENCY,
        )
        users.append(user.model_dump())
        self.storage.set_json(USERS_KEY, users)
        LOG.info("Registered local user %s", username)
        return user

    def login(self, username: str, password: str) -> LocalUser:
        match = next(
            (user for user in self._users() if user.get("username") == username and user.get("password") == password),
            None,
        )
        if match is None:
            raise AccountError("Invalid credentials")
        try:
            user = LocalUser.model_validate(match)
        except ValueError as exc:
            raise StorageError(f"Stored local user {username} is malformed") from exc
        self.storage.set_json(CURRENT_USER_KEY, {"id": user.id, "username": user.username})
        return user

    def logout(self) -> None:
        self.storage.remove_item(CURRENT_USER_KEY)

    def current_user(self) -> Optional[dict]:
        stored = self.storage.get_json(CURRENT_USER_KEY)
        if isinstance(stored, dict) and stored.get("id"):
            return stored
        return None


__all__ = [
    "AuthClient",
    "AuthSession",
    "AuthUser",
    "LocalAccounts",
    "SIGNED_IN",
    "SIGNED_OUT",
    "Subscription",
]
