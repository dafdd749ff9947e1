# app/schemas/overhead.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import Figure, Money

CategoryLiteral = Literal[
    "MATERIEL", "VEHICULE", "LOCATION", "CHARGES", "ASSURANCE", "BANQUE",
    "LOGICIEL", "SERVICE", "COMMUNICATION", "CREDIT_CLASSIQUE", "CREDIT_BAIL", "AUTRE",
]


class OverheadCreate(BaseModel):
    Label: str = Field(min_length=1, max_length=200)
    MonthlyAmountHT: Decimal = Field(ge=0)
    MonthlyAmountTTC: Decimal = Field(ge=0)
    Category: CategoryLiteral = "AUTRE"
    DisplayOrder: int = 0
    StartDate: Optional[date] = None
    EndDate: Optional[date] = None
    Comment: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _window(self):
        if self.StartDate and self.EndDate and self.EndDate < self.StartDate:
            raise ValueError("EndDate must be on or after StartDate")
        return self


class OverheadUpdate(BaseModel):
    Label: Optional[str] = Field(None, min_length=1, max_length=200)
    MonthlyAmountHT: Optional[Decimal] = Field(None, ge=0)
    MonthlyAmountTTC: Optional[Decimal] = Field(None, ge=0)
    Category: Optional[CategoryLiteral] = None
    DisplayOrder: Optional[int] = None
    StartDate: Optional[date] = None
    EndDate: Optional[date] = None
    Comment: Optional[str] = Field(None, max_length=1000)
    IsActive: Optional[bool] = None
    # optimistic locking: the Version the client last read
    Version: Optional[int] = None


class OverheadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ItemID: int
    Label: str
    MonthlyAmountHT: Money
    MonthlyAmountTTC: Money
    Category: str
    DisplayOrder: int
    IsActive: bool
    StartDate: Optional[date] = None
    EndDate: Optional[date] = None
    Comment: Optional[str] = None
    Version: int
    UpdatedAt: Optional[datetime] = None


class OverheadLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    label: str
    category: str
    monthly_ht: Money
    period_ht: Money


class OverheadPeriodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: date
    end: date
    work_week_days: int
    hours_per_day: Figure
    workdays: int
    total_hours: Figure
    monthly_total_ht: Money
    monthly_total_ttc: Money
    period_total_ht: Money
    period_total_ttc: Money
    breakdown: List[OverheadLineRead] = []
