"""Pydantic schemas for the records exchanged by the repositories."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

CENT = Decimal("0.01")


def coerce_amount(value: object) -> Decimal:
    """Coerce a stored or submitted amount to a two-place ``Decimal``, falling back to zero."""

    if value is None or isinstance(value, bool):
        return Decimal(0).quantize(CENT)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            return Decimal(0).quantize(CENT)
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return Decimal(0).quantize(CENT)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are stored as UTC.
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]
Amount = Annotated[Decimal, AfterValidator(coerce_amount)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class Part(ORMModel):
    id: str
    user_id: str
    component: str
    name: str = ""
    amount: Amount = Decimal(0)
    created_at: UTCDateTime
    updated_at: UTCDateTime
    sort_order: int = 0


class PartOrder(BaseModel):
    """Full part record submitted when persisting a reordering."""

    id: str
    user_id: str
    component: str
    name: str = ""
    amount: Amount = Decimal(0)
    sort_order: int


class UserProfile(ORMModel):
    id: str
    username: str
    currency: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class PCSetup(ORMModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    total_amount: Amount = Decimal(0)
    created_at: UTCDateTime
    updated_at: UTCDateTime


class SetupPart(ORMModel):
    id: str
    setup_id: str
    component: str
    name: str = ""
    amount: Amount = Decimal(0)
    created_at: UTCDateTime


class SetupPartInput(BaseModel):
    component: str
    name: str = ""
    amount: Amount = Decimal(0)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce(cls, value: object) -> Decimal:
        return coerce_amount(value)


class PartInput(SetupPartInput):
    sort_order: Optional[int] = None


class SetupInput(BaseModel):
    name: str = Field(..., max_length=255)
    description: str = ""
    parts: List[SetupPartInput] = Field(default_factory=list)


class LocalPart(BaseModel):
    """Part entry embedded in a local user record; everything but ``id`` may be missing."""

    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    component: Optional[str] = None
    name: Optional[str] = None
    amount: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    sort_order: Optional[int] = None


class LocalUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    username: Optional[str] = None
    password: Optional[str] = None
    currency: Optional[str] = None
    parts: List[LocalPart] = Field(default_factory=list)
    setups: List[dict] = Field(default_factory=list)


class SetupCreateStatus(str, Enum):
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class SetupCreateResult:
    """Outcome of the two-phase setup creation.

    ``FAILED`` means the parent insert itself failed and nothing was written.
    ``ROLLED_BACK`` means the children failed and the parent was removed again.
    ``PARTIAL`` means the parent could not be removed and needs manual cleanup.
    """

    status: SetupCreateStatus
    setup: Optional[PCSetup] = None

    @property
    def committed(self) -> bool:
        return self.status is SetupCreateStatus.COMMITTED


@dataclass(frozen=True)
class CurrencyLookup:
    currency: str
    created: Optional[bool] = None


def total_amount(parts: List[SetupPartInput]) -> Decimal:
    return sum((part.amount for part in parts), Decimal(0))


class Credentials(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class CurrencyUpdate(BaseModel):
    currency: str = Field(..., min_length=3, max_length=3)


class CurrencyRead(BaseModel):
    currency: str


class LocalUserRead(BaseModel):
    id: str
    username: Optional[str] = None
    currency: Optional[str] = None
