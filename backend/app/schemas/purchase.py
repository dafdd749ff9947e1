# app/schemas/purchase.py
from datetime import date, datetime
from typing import Optional, Literal
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.domain import clock
from app.domain.order_states import (
    STATUS_LABELS, TERMINAL_STATUSES, effective_status, requires_override,
)
from app.schemas.common import MONEY_PLACES, Money

StatusLiteral = Literal["PENDING", "VALIDATED", "RECEIVED", "CANCELLED"]


def _amount(v) -> Decimal:
    try:
        d = (Decimal(v) if not isinstance(v, Decimal) else v).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError("AmountHT must be a valid decimal")
    if d < 0:
        raise ValueError("AmountHT must be >= 0")
    return d


class POCreate(BaseModel):
    JobID: int = Field(ge=1)
    CategoryID: int = Field(ge=1)
    SupplierName: str = Field(min_length=1, max_length=200)
    AmountHT: Decimal
    OrderDate: Optional[date] = None
    RequestedDeliveryDate: Optional[date] = None
    Comment: Optional[str] = Field(None, max_length=1000)

    @field_validator("AmountHT")
    @classmethod
    def _amount_ok(cls, v: Decimal) -> Decimal:
        return _amount(v)


class POUpdate(BaseModel):
    SupplierName: Optional[str] = Field(None, min_length=1, max_length=200)
    AmountHT: Optional[Decimal] = None
    CategoryID: Optional[int] = Field(None, ge=1)
    OrderDate: Optional[date] = None
    RequestedDeliveryDate: Optional[date] = None
    Comment: Optional[str] = Field(None, max_length=1000)

    @field_validator("AmountHT")
    @classmethod
    def _amount_ok(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return None if v is None else _amount(v)


class POReceive(BaseModel):
    ReceptionDate: Optional[date] = None


class PODelete(BaseModel):
    credential: Optional[str] = None


class PORead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    OrderID: int
    Number: str
    SupplierName: str
    JobID: int
    CategoryID: int
    AmountHT: Money
    OrderDate: date
    RequestedDeliveryDate: Optional[date] = None
    ReceptionDate: Optional[date] = None
    Comment: Optional[str] = None
    Status_s: StatusLiteral
    AttachmentPath: Optional[str] = None
    CreatedBy: Optional[str] = None
    CreatedAt: Optional[datetime] = None
    ValidatedBy: Optional[str] = None
    ValidatedAt: Optional[datetime] = None
    CancelledBy: Optional[str] = None
    CancelledAt: Optional[datetime] = None
    ReceivedBy: Optional[str] = None

    @computed_field
    @property
    def EffectiveStatus(self) -> StatusLiteral:
        return effective_status(self)

    @computed_field
    @property
    def StatusLabel(self) -> str:
        return STATUS_LABELS[effective_status(self)]

    @computed_field
    @property
    def IsLate(self) -> bool:
        if not self.RequestedDeliveryDate or effective_status(self) in TERMINAL_STATUSES:
            return False
        return self.RequestedDeliveryDate < clock.today()

    @computed_field
    @property
    def RequiresCredentialToDelete(self) -> bool:
        return requires_override(self)


class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    CategoryID: int
    Code: str
    Label: str
