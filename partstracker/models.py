"""SQLAlchemy models for the tables consumed by the remote backend."""
from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from .database import Base


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: str = Column(String(64), primary_key=True)
    username: str = Column(String(100), nullable=False)
    currency: str = Column(String(3), nullable=False, default="PHP")
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class Part(Base):
    __tablename__ = "parts"

    id: str = Column(String(64), primary_key=True, default=new_id)
    user_id: str = Column(String(64), nullable=False, index=True)
    component: str = Column(String(100), nullable=False)
    name: str = Column(String(255), nullable=False, default="")
    amount: Decimal = Column(Numeric(12, 2), nullable=False, default=0)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    sort_order: int = Column(Integer, nullable=False, default=0)


class PCSetup(Base):
    __tablename__ = "pc_setups"

    id: str = Column(String(64), primary_key=True, default=new_id)
    user_id: str = Column(String(64), ForeignKey("user_profiles.id"), nullable=False, index=True)
    name: str = Column(String(255), nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    total_amount: Decimal = Column(Numeric(14, 2), nullable=False, default=0)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class SetupPart(Base):
    __tablename__ = "setup_parts"

    # Children are removed explicitly before the parent, so no ORM cascade here.
    id: str = Column(String(64), primary_key=True, default=new_id)
    setup_id: str = Column(String(64), ForeignKey("pc_setups.id"), nullable=False, index=True)
    component: str = Column(String(100), nullable=False)
    name: str = Column(String(255), nullable=False, default="")
    amount: Decimal = Column(Numeric(12, 2), nullable=False, default=0)
    position: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=utcnow)
