"""Resolution of the active user identity and its storage backend.

The resolver moves through three states:

* ``unresolved``: nothing cached yet, or the remote session ended;
* ``remote``: a signed-in auth session, served by the remote backend;
* ``local``: an identity read from local storage, served by the local
  backend. Once reached, local mode is kept for the resolver's lifetime;
  signing out only drops the identity, which is read from storage again on
  the next resolution.

Callers receive an explicit :class:`SessionContext` and hand it to the
repositories; the backend choice is made here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from partstracker.auth import SIGNED_IN, AuthClient, AuthSession
from partstracker.backends import LocalBackend, RemoteBackend, StorageBackend
from partstracker.errors import NotAuthenticated, StorageError
from partstracker.local_store import CURRENT_USER_KEY, LocalStorage
from partstracker.logging import setup_logger

LOG = setup_logger(__name__)

UNRESOLVED = "unresolved"
REMOTE = "remote"
LOCAL = "local"


@dataclass(frozen=True)
class SessionContext:
    user_id: str
    mode: str
    backend: StorageBackend


class SessionResolver:
    def __init__(
        self,
        auth: AuthClient,
        remote: RemoteBackend,
        local: LocalBackend,
        storage: LocalStorage,
    ) -> None:
        self.auth = auth
        self.remote = remote
        self.local = local
        self.storage = storage
        self._context: Optional[SessionContext] = None
        self._local_pinned = False
        self._subscription = auth.on_auth_state_change(self._on_auth_state_change)
        self._refresh_remote()

    @property
    def state(self) -> str:
        if self._context is not None:
            return self._context.mode
        return LOCAL if self._local_pinned else UNRESOLVED

    def _refresh_remote(self) -> None:
        user = self.auth.get_user()
        if user is not None:
            self._context = SessionContext(user_id=user.id, mode=REMOTE, backend=self.remote)

    def _on_auth_state_change(self, event: str, session: Optional[AuthSession]) -> None:
        if self._local_pinned:
            if event == SIGNED_IN:
                LOG.debug("Ignoring %s while pinned to local storage", event)
                return
            # The local backend stays; only the identity is read again.
            self._context = None
            return
        if event == SIGNED_IN and session is not None:
            self._context = SessionContext(user_id=session.user.id, mode=REMOTE, backend=self.remote)
        else:
            self._context = None

    def _read_local_identity(self) -> Optional[str]:
        try:
            stored = self.storage.get_json(CURRENT_USER_KEY)
        except StorageError:
            LOG.warning("Local storage unreadable while resolving the session", exc_info=True)
            return None
        if isinstance(stored, dict) and stored.get("id"):
            return str(stored["id"])
        return None

    def resolve(self) -> SessionContext:
        """Return the cached context, refreshing it first when unresolved.

        Raises:
            NotAuthenticated: when neither an auth session nor a stored local
                identity is available.
        """

        if self._context is not None:
            return self._context
        if not self._local_pinned:
            self._refresh_remote()
            if self._context is not None:
                return self._context
        user_id = self._read_local_identity()
        if user_id is not None:
            if not self._local_pinned:
                LOG.info("Switching to local storage for user %s", user_id)
                self._local_pinned = True
            self._context = SessionContext(user_id=user_id, mode=LOCAL, backend=self.local)
            return self._context
        raise NotAuthenticated()

    def invalidate(self) -> None:
        """Forget the cached identity; the mode and its backend are kept."""

        self._context = None

    def refresh(self) -> SessionContext:
        self.invalidate()
        return self.resolve()

    def close(self) -> None:
        self._subscription.unsubscribe()


__all__ = ["LOCAL", "REMOTE", "UNRESOLVED", "SessionContext", "SessionResolver"]
