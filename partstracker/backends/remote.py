"""Storage backend talking to the relational service through SQLAlchemy."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, Mapping, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from partstracker import models, schemas
from partstracker.database import session_scope
from partstracker.errors import StorageError

from .base import StorageBackend

LOG = logging.getLogger(__name__)


def _owned_setup(user_id: str, setup_id: str):
    return select(models.PCSetup.id).where(
        models.PCSetup.id == setup_id,
        models.PCSetup.user_id == user_id,
    )


class RemoteBackend(StorageBackend):
    """Each public method runs in its own transaction."""

    mode = "remote"

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _scope(self, operation: str) -> Iterator[Session]:
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            LOG.debug("Remote %s failed: %s", operation, exc)
            raise StorageError(f"{operation} failed: {exc}") from exc

    # parts

    def list_parts(self, user_id: str) -> list[schemas.Part]:
        stmt = (
            select(models.Part)
            .where(models.Part.user_id == user_id)
            .order_by(models.Part.sort_order.asc(), models.Part.created_at.asc())
        )
        with self._scope("list_parts") as session:
            return [schemas.Part.model_validate(row) for row in session.scalars(stmt)]

    def find_part(self, user_id: str, component: str) -> Optional[schemas.Part]:
        stmt = select(models.Part).where(
            models.Part.user_id == user_id,
            models.Part.component == component,
        )
        with self._scope("find_part") as session:
            row = session.scalars(stmt).first()
            return schemas.Part.model_validate(row) if row is not None else None

    def insert_part(
        self, user_id: str, component: str, name: str, amount: Decimal, sort_order: int
    ) -> schemas.Part:
        part = models.Part(
            user_id=user_id,
            component=component,
            name=name,
            amount=amount,
            sort_order=sort_order,
        )
        with self._scope("insert_part") as session:
            session.add(part)
            session.flush()
            session.refresh(part)
            return schemas.Part.model_validate(part)

    def update_part(self, user_id: str, part_id: str, values: Mapping[str, Any]) -> schemas.Part:
        with self._scope("update_part") as session:
            part = session.get(models.Part, part_id)
            if part is None or part.user_id != user_id:
                raise StorageError(f"Part {part_id} not found")
            for field, value in values.items():
                setattr(part, field, value)
            session.flush()
            session.refresh(part)
            return schemas.Part.model_validate(part)

    def upsert_parts(self, user_id: str, parts: Sequence[schemas.PartOrder]) -> None:
        ids = [record.id for record in parts]
        foreign = select(models.Part.id).where(models.Part.id.in_(ids), models.Part.user_id != user_id)
        with self._scope("upsert_parts") as session:
            taken = session.scalars(foreign).all()
            if taken:
                raise StorageError(f"Parts {', '.join(sorted(taken))} belong to another user")
            for record in parts:
                values = record.model_dump(exclude={"user_id"})
                session.merge(models.Part(**values, user_id=user_id, updated_at=models.utcnow()))

    def delete_part(self, user_id: str, part_id: str) -> int:
        stmt = delete(models.Part).where(models.Part.id == part_id, models.Part.user_id == user_id)
        with self._scope("delete_part") as session:
            return session.execute(stmt).rowcount

    def delete_all_parts(self, user_id: str) -> int:
        stmt = delete(models.Part).where(models.Part.user_id == user_id)
        with self._scope("delete_all_parts") as session:
            return session.execute(stmt).rowcount

    def insert_parts(
        self, user_id: str, parts: Sequence[schemas.SetupPartInput]
    ) -> list[schemas.Part]:
        rows = [
            models.Part(
                user_id=user_id,
                component=part.component,
                name=part.name,
                amount=part.amount,
                sort_order=index,
            )
            for index, part in enumerate(parts)
        ]
        with self._scope("insert_parts") as session:
            session.add_all(rows)
            session.flush()
            return [schemas.Part.model_validate(row) for row in rows]

    # profiles

    def get_profile(self, user_id: str) -> Optional[schemas.UserProfile]:
        with self._scope("get_profile") as session:
            profile = session.get(models.UserProfile, user_id)
            return schemas.UserProfile.model_validate(profile) if profile is not None else None

    def upsert_profile(self, user_id: str, username: str, currency: str) -> schemas.UserProfile:
        with self._scope("upsert_profile") as session:
            profile = session.get(models.UserProfile, user_id)
            if profile is None:
                profile = models.UserProfile(id=user_id, username=username, currency=currency)
                session.add(profile)
            else:
                profile.currency = currency
                profile.updated_at = models.utcnow()
            session.flush()
            session.refresh(profile)
            return schemas.UserProfile.model_validate(profile)

    # setups

    def list_setups(self, user_id: str) -> list[schemas.PCSetup]:
        stmt = (
            select(models.PCSetup)
            .where(models.PCSetup.user_id == user_id)
            .order_by(models.PCSetup.created_at.desc())
        )
        with self._scope("list_setups") as session:
            return [schemas.PCSetup.model_validate(row) for row in session.scalars(stmt)]

    def insert_setup(
        self, user_id: str, name: str, description: str, total_amount: Decimal
    ) -> schemas.PCSetup:
        setup = models.PCSetup(
            user_id=user_id,
            name=name,
            description=description,
            total_amount=total_amount,
        )
        with self._scope("insert_setup") as session:
            session.add(setup)
            session.flush()
            session.refresh(setup)
            return schemas.PCSetup.model_validate(setup)

    def update_setup(
        self, user_id: str, setup_id: str, name: str, description: str, total_amount: Decimal
    ) -> int:
        stmt = (
            update(models.PCSetup)
            .where(models.PCSetup.id == setup_id, models.PCSetup.user_id == user_id)
            .values(
                name=name,
                description=description,
                total_amount=total_amount,
                updated_at=models.utcnow(),
            )
        )
        with self._scope("update_setup") as session:
            return session.execute(stmt).rowcount

    def delete_setup(self, user_id: str, setup_id: str) -> int:
        stmt = delete(models.PCSetup).where(
            models.PCSetup.id == setup_id,
            models.PCSetup.user_id == user_id,
        )
        with self._scope("delete_setup") as session:
            return session.execute(stmt).rowcount

    def list_setup_parts(self, user_id: str, setup_id: str) -> list[schemas.SetupPart]:
        stmt = (
            select(models.SetupPart)
            .where(models.SetupPart.setup_id.in_(_owned_setup(user_id, setup_id)))
            .order_by(models.SetupPart.created_at.asc(), models.SetupPart.position.asc())
        )
        with self._scope("list_setup_parts") as session:
            return [schemas.SetupPart.model_validate(row) for row in session.scalars(stmt)]

    def insert_setup_parts(
        self, user_id: str, setup_id: str, parts: Sequence[schemas.SetupPartInput]
    ) -> None:
        if not parts:
            return
        created_at = models.utcnow()
        rows = [
            models.SetupPart(
                setup_id=setup_id,
                component=part.component,
                name=part.name,
                amount=part.amount,
                position=index,
                created_at=created_at,
            )
            for index, part in enumerate(parts)
        ]
        with self._scope("insert_setup_parts") as session:
            if session.scalar(_owned_setup(user_id, setup_id)) is None:
                raise StorageError(f"Setup {setup_id} not found")
            session.add_all(rows)

    def delete_setup_parts(self, user_id: str, setup_id: str) -> int:
        stmt = delete(models.SetupPart).where(
            models.SetupPart.setup_id.in_(_owned_setup(user_id, setup_id))
        )
        with self._scope("delete_setup_parts") as session:
            return session.execute(stmt).rowcount


__all__ = ["RemoteBackend"]
