# app/schemas/job.py
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Figure, Money

QuoteStatusLiteral = Literal["DRAFT", "VALIDATED", "DONE", "REJECTED"]
PhaseLiteral = Literal["FAB", "SER", "POSE"]


class JobCreate(BaseModel):
    Number: str = Field(min_length=1, max_length=30)
    Label: str = Field(min_length=1, max_length=200)
    Client: Optional[str] = Field(None, max_length=200)
    TargetRevenue: Decimal = Field(Decimal("0"), ge=0)
    TargetHoursFab: Decimal = Field(Decimal("0"), ge=0)
    TargetHoursSer: Decimal = Field(Decimal("0"), ge=0)
    TargetHoursPose: Decimal = Field(Decimal("0"), ge=0)
    HourlyRate: Decimal = Field(Decimal("0"), ge=0)
    PlannedStart: Optional[date] = None
    PlannedEnd: Optional[date] = None
    ActualStart: Optional[date] = None
    ActualEnd: Optional[date] = None


class JobUpdate(BaseModel):
    Label: Optional[str] = Field(None, min_length=1, max_length=200)
    Client: Optional[str] = Field(None, max_length=200)
    TargetRevenue: Optional[Decimal] = Field(None, ge=0)
    TargetHoursFab: Optional[Decimal] = Field(None, ge=0)
    TargetHoursSer: Optional[Decimal] = Field(None, ge=0)
    TargetHoursPose: Optional[Decimal] = Field(None, ge=0)
    HourlyRate: Optional[Decimal] = Field(None, ge=0)
    PlannedStart: Optional[date] = None
    PlannedEnd: Optional[date] = None
    ActualStart: Optional[date] = None
    ActualEnd: Optional[date] = None


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    JobID: int
    Number: str
    Label: str
    Client: Optional[str] = None
    TargetRevenue: Money
    TargetHoursFab: Figure
    TargetHoursSer: Figure
    TargetHoursPose: Figure
    HourlyRate: Money
    PlannedStart: Optional[date] = None
    PlannedEnd: Optional[date] = None
    ActualStart: Optional[date] = None
    ActualEnd: Optional[date] = None
    TotalOrdered: Money
    TotalReceived: Money
    CreatedAt: Optional[datetime] = None


class QuoteCreate(BaseModel):
    Number: str = Field(min_length=1, max_length=30)
    AmountHT: Decimal = Field(ge=0)
    Status_s: QuoteStatusLiteral = "DRAFT"


class QuoteStatusIn(BaseModel):
    Status_s: QuoteStatusLiteral


class QuoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    QuoteID: int
    JobID: int
    Number: str
    AmountHT: Money
    Status_s: QuoteStatusLiteral


class TimeEntryCreate(BaseModel):
    Phase: PhaseLiteral
    Hours: Decimal = Field(gt=0)
    EntryDate: Optional[date] = None
    Operator: Optional[str] = Field(None, max_length=100)


class TimeEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    EntryID: int
    JobID: int
    Phase: PhaseLiteral
    Hours: Figure
    EntryDate: date
    Operator: Optional[str] = None
