"""Data-access repositories for parts, setups and the user profile.

Every public method takes the resolved :class:`SessionContext`. Storage
failures never escape: they are logged with the operation context and turned
into an empty list, ``None`` or ``False``. Multi-step flows are sequential and
not atomic, so a ``None``/``False`` result may follow a partial write.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from partstracker import schemas
from partstracker.config import DEFAULT_CURRENCY, DEFAULT_USERNAME
from partstracker.errors import StorageError
from partstracker.logging import setup_logger
from partstracker.session import SessionContext

LOG = setup_logger(__name__)

DEFAULT_COMPONENTS = (
    "CPU",
    "GPU",
    "Motherboard",
    "RAM",
    "Storage",
    "Power Supply",
    "Case",
    "CPU Cooler",
)


def _log_failure(operation: str, ctx: SessionContext, exc: Exception, **context: object) -> None:
    LOG.error(
        "%s failed for user %s: %s",
        operation,
        ctx.user_id,
        exc,
        extra={"operation": operation, "user_id": ctx.user_id, "context": context or None},
    )


def _as_inputs(parts: Iterable[object]) -> List[schemas.SetupPartInput]:
    return [
        part if isinstance(part, schemas.SetupPartInput) else schemas.SetupPartInput.model_validate(part, from_attributes=True)
        for part in parts
    ]


class PartRepository:
    def list(self, ctx: SessionContext) -> List[schemas.Part]:
        try:
            return ctx.backend.list_parts(ctx.user_id)
        except StorageError as exc:
            _log_failure("list_parts", ctx, exc)
            return []

    def save(
        self,
        ctx: SessionContext,
        component: str,
        name: str,
        amount: Decimal | float | int | str,
        sort_order: Optional[int] = None,
    ) -> Optional[schemas.Part]:
        """Update the part stored for ``component`` or insert a new one."""

        amount = schemas.coerce_amount(amount)
        backend = ctx.backend
        try:
            existing = backend.find_part(ctx.user_id, component)
            if existing is not None:
                values: dict[str, object] = {
                    "name": name,
                    "amount": amount,
                    "updated_at": datetime.now(tz=UTC),
                }
                if sort_order is not None:
                    values["sort_order"] = sort_order
                return backend.update_part(ctx.user_id, existing.id, values)
            if sort_order is None:
                sort_order = len(backend.list_parts(ctx.user_id))
            return backend.insert_part(ctx.user_id, component, name, amount, sort_order)
        except StorageError as exc:
            _log_failure("save_part", ctx, exc, component=component)
            return None

    def update_orders(self, ctx: SessionContext, parts: Sequence[object]) -> bool:
        """Persist a complete reordering with a single upsert keyed by ``id``."""

        try:
            updates = [
                part if isinstance(part, schemas.PartOrder) else schemas.PartOrder.model_validate(part, from_attributes=True)
                for part in parts
            ]
        except ValueError as exc:
            _log_failure("update_part_orders", ctx, exc, updates=[repr(part) for part in parts])
            return False
        try:
            ctx.backend.upsert_parts(ctx.user_id, updates)
        except StorageError as exc:
            _log_failure(
                "update_part_orders",
                ctx,
                exc,
                updates=[update.model_dump(mode="json") for update in updates],
            )
            return False
        return True

    def delete(self, ctx: SessionContext, part_id: str) -> bool:
        try:
            removed = ctx.backend.delete_part(ctx.user_id, part_id)
        except StorageError as exc:
            _log_failure("delete_part", ctx, exc, part_id=part_id)
            return False
        if not removed:
            LOG.info("No part %s owned by user %s", part_id, ctx.user_id)
            return False
        return True

    def delete_all(self, ctx: SessionContext) -> bool:
        try:
            ctx.backend.delete_all_parts(ctx.user_id)
        except StorageError as exc:
            _log_failure("delete_all_parts", ctx, exc)
            return False
        return True

    def seed_defaults(self, ctx: SessionContext) -> None:
        for component in DEFAULT_COMPONENTS:
            self.save(ctx, component, "", 0)


class ProfileRepository:
    def __init__(self, default_currency: str = DEFAULT_CURRENCY, default_username: str = DEFAULT_USERNAME) -> None:
        self.default_currency = default_currency
        self.default_username = default_username

    def get_or_create(self, ctx: SessionContext) -> schemas.CurrencyLookup:
        """Read the profile currency, creating a default profile when none exists.

        ``created`` is ``None`` when a profile already existed, otherwise it
        tells whether the default profile was written.
        """

        try:
            profile = ctx.backend.get_profile(ctx.user_id)
        except StorageError as exc:
            _log_failure("get_currency", ctx, exc)
            return schemas.CurrencyLookup(currency=self.default_currency)
        if profile is not None:
            return schemas.CurrencyLookup(currency=profile.currency or self.default_currency)
        try:
            ctx.backend.upsert_profile(ctx.user_id, self.default_username, self.default_currency)
        except StorageError as exc:
            _log_failure("create_user_profile", ctx, exc)
            return schemas.CurrencyLookup(currency=self.default_currency, created=False)
        return schemas.CurrencyLookup(currency=self.default_currency, created=True)

    def get_currency(self, ctx: SessionContext) -> str:
        return self.get_or_create(ctx).currency

    def set_currency(self, ctx: SessionContext, currency: str) -> bool:
        try:
            ctx.backend.upsert_profile(ctx.user_id, self.default_username, currency)
        except StorageError as exc:
            _log_failure("update_currency", ctx, exc, currency=currency)
            return False
        return True


class SetupRepository:
    def __init__(self, parts: PartRepository, profiles: ProfileRepository) -> None:
        self.parts = parts
        self.profiles = profiles

    def list(self, ctx: SessionContext) -> List[schemas.PCSetup]:
        try:
            return ctx.backend.list_setups(ctx.user_id)
        except StorageError as exc:
            _log_failure("list_setups", ctx, exc)
            return []

    def create_detailed(
        self,
        ctx: SessionContext,
        name: str,
        description: str,
        parts: Sequence[object],
    ) -> schemas.SetupCreateResult:
        """Insert the setup, then its children; undo the setup if the children fail."""

        try:
            children = _as_inputs(parts)
        except ValueError as exc:
            _log_failure("create_setup", ctx, exc, name=name)
            return schemas.SetupCreateResult(status=schemas.SetupCreateStatus.FAILED)
        total = schemas.total_amount(children)
        backend = ctx.backend
        # Setups reference the profile row.
        self.profiles.get_or_create(ctx)
        try:
            setup = backend.insert_setup(ctx.user_id, name, description, total)
        except StorageError as exc:
            _log_failure("create_setup", ctx, exc, name=name)
            return schemas.SetupCreateResult(status=schemas.SetupCreateStatus.FAILED)
        try:
            backend.insert_setup_parts(ctx.user_id, setup.id, children)
        except StorageError as exc:
            _log_failure("create_setup_parts", ctx, exc, setup_id=setup.id)
            try:
                backend.delete_setup(ctx.user_id, setup.id)
            except StorageError as cleanup_exc:
                _log_failure("create_setup_cleanup", ctx, cleanup_exc, setup_id=setup.id)
                return schemas.SetupCreateResult(status=schemas.SetupCreateStatus.PARTIAL, setup=setup)
            return schemas.SetupCreateResult(status=schemas.SetupCreateStatus.ROLLED_BACK)
        return schemas.SetupCreateResult(status=schemas.SetupCreateStatus.COMMITTED, setup=setup)

    def create(
        self,
        ctx: SessionContext,
        name: str,
        description: str,
        parts: Sequence[object],
    ) -> Optional[schemas.PCSetup]:
        result = self.create_detailed(ctx, name, description, parts)
        return result.setup if result.committed else None

    def get_children(self, ctx: SessionContext, setup_id: str) -> List[schemas.SetupPart]:
        try:
            return ctx.backend.list_setup_parts(ctx.user_id, setup_id)
        except StorageError as exc:
            _log_failure("get_setup_parts", ctx, exc, setup_id=setup_id)
            return []

    def load_into_current_parts(self, ctx: SessionContext, setup_id: str) -> bool:
        """Replace the user's current parts with copies of the setup's children.

        Not transactional: when the insert fails after the delete, the user is
        left without parts and ``False`` is returned.
        """

        children = self.get_children(ctx, setup_id)
        if not children:
            return False
        if not self.parts.delete_all(ctx):
            return False
        replacements = [
            schemas.SetupPartInput(component=child.component, name=child.name, amount=child.amount)
            for child in children
        ]
        try:
            ctx.backend.insert_parts(ctx.user_id, replacements)
        except StorageError as exc:
            _log_failure("load_setup_to_current_parts", ctx, exc, setup_id=setup_id)
            return False
        return True

    def delete(self, ctx: SessionContext, setup_id: str) -> bool:
        backend = ctx.backend
        try:
            backend.delete_setup_parts(ctx.user_id, setup_id)
        except StorageError as exc:
            _log_failure("delete_setup_parts", ctx, exc, setup_id=setup_id)
            return False
        try:
            removed = backend.delete_setup(ctx.user_id, setup_id)
        except StorageError as exc:
            _log_failure("delete_setup", ctx, exc, setup_id=setup_id)
            return False
        return bool(removed)

    def update(
        self,
        ctx: SessionContext,
        setup_id: str,
        name: str,
        description: str,
        parts: Sequence[object],
    ) -> bool:
        try:
            children = _as_inputs(parts)
        except ValueError as exc:
            _log_failure("update_setup", ctx, exc, setup_id=setup_id)
            return False
        total = schemas.total_amount(children)
        backend = ctx.backend
        try:
            matched = backend.update_setup(ctx.user_id, setup_id, name, description, total)
        except StorageError as exc:
            _log_failure("update_setup", ctx, exc, setup_id=setup_id)
            return False
        if not matched:
            LOG.info("No setup %s owned by user %s", setup_id, ctx.user_id)
            return False
        try:
            backend.delete_setup_parts(ctx.user_id, setup_id)
        except StorageError as exc:
            _log_failure("update_setup_delete_parts", ctx, exc, setup_id=setup_id)
            return False
        try:
            backend.insert_setup_parts(ctx.user_id, setup_id, children)
        except StorageError as exc:
            _log_failure("update_setup_insert_parts", ctx, exc, setup_id=setup_id)
            return False
        return True


__all__ = ["DEFAULT_COMPONENTS", "PartRepository", "ProfileRepository", "SetupRepository"]
