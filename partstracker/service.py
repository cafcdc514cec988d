"""Application facade wiring the session resolver to the repositories."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.engine import Engine

from partstracker import database, schemas
from partstracker.auth import AuthClient, LocalAccounts
from partstracker.backends import LocalBackend, RemoteBackend
from partstracker.config import DEFAULT_CURRENCY, DEFAULT_USERNAME, Settings
from partstracker.local_store import LocalStorage
from partstracker.repositories import PartRepository, ProfileRepository, SetupRepository
from partstracker.session import SessionContext, SessionResolver


class TrackerService:
    """Resolve the session once per call and delegate to the repositories.

    Only :class:`~partstracker.errors.NotAuthenticated` propagates from these
    methods; storage failures come back as ``[]``, ``None`` or ``False``.
    """

    def __init__(
        self,
        resolver: SessionResolver,
        default_currency: str = DEFAULT_CURRENCY,
        default_username: str = DEFAULT_USERNAME,
    ) -> None:
        self.resolver = resolver
        self.engine: Optional[Engine] = None
        self.parts = PartRepository()
        self.profiles = ProfileRepository(default_currency, default_username)
        self.setups = SetupRepository(self.parts, self.profiles)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        engine: Optional[Engine] = None,
        auth: Optional[AuthClient] = None,
        storage: Optional[LocalStorage] = None,
    ) -> "TrackerService":
        engine = engine or database.build_engine(settings.database_url)
        remote = RemoteBackend(database.build_session_factory(engine))
        storage = storage or LocalStorage(settings.local_store_path)
        resolver = SessionResolver(
            auth=auth or AuthClient(),
            remote=remote,
            local=LocalBackend(storage),
            storage=storage,
        )
        service = cls(resolver, settings.default_currency, settings.default_username)
        service.engine = engine
        return service

    @property
    def auth(self) -> AuthClient:
        return self.resolver.auth

    @property
    def accounts(self) -> LocalAccounts:
        return LocalAccounts(self.resolver.storage)

    def context(self) -> SessionContext:
        return self.resolver.resolve()

    def login(self, username: str, password: str) -> schemas.LocalUser:
        """Sign in a local account; the next call resolves to that user."""

        user = self.accounts.login(username, password)
        self.resolver.invalidate()
        return user

    def logout(self) -> None:
        self.accounts.logout()
        self.auth.sign_out()
        self.resolver.invalidate()

    # parts

    def get_parts(self) -> List[schemas.Part]:
        return self.parts.list(self.context())

    def save_part(
        self,
        component: str,
        name: str,
        amount: Decimal | float | int | str,
        sort_order: Optional[int] = None,
    ) -> Optional[schemas.Part]:
        return self.parts.save(self.context(), component, name, amount, sort_order)

    def update_part_orders(self, parts: Sequence[object]) -> bool:
        return self.parts.update_orders(self.context(), parts)

    def delete_part(self, part_id: str) -> bool:
        return self.parts.delete(self.context(), part_id)

    def seed_default_parts(self) -> None:
        self.parts.seed_defaults(self.context())

    # setups

    def get_setups(self) -> List[schemas.PCSetup]:
        return self.setups.list(self.context())

    def create_setup(self, name: str, description: str, parts: Sequence[object]) -> Optional[schemas.PCSetup]:
        return self.setups.create(self.context(), name, description, parts)

    def create_setup_detailed(
        self, name: str, description: str, parts: Sequence[object]
    ) -> schemas.SetupCreateResult:
        return self.setups.create_detailed(self.context(), name, description, parts)

    def get_setup_parts(self, setup_id: str) -> List[schemas.SetupPart]:
        return self.setups.get_children(self.context(), setup_id)

    def load_setup_to_current_parts(self, setup_id: str) -> bool:
        return self.setups.load_into_current_parts(self.context(), setup_id)

    def delete_setup(self, setup_id: str) -> bool:
        return self.setups.delete(self.context(), setup_id)

    def update_setup(self, setup_id: str, name: str, description: str, parts: Sequence[object]) -> bool:
        return self.setups.update(self.context(), setup_id, name, description, parts)

    # currency

    def get_currency(self) -> str:
        return self.profiles.get_currency(self.context())

    def get_or_create_currency(self) -> schemas.CurrencyLookup:
        return self.profiles.get_or_create(self.context())

    def update_currency(self, currency: str) -> bool:
        return self.profiles.set_currency(self.context(), currency)


__all__ = ["TrackerService"]
