# app/schemas/estimation.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.domain.allocation import AllocationSummary
from app.schemas.common import Figure, Money

ModeLiteral = Literal["percent", "amount"]


class EstimationCategoryIn(BaseModel):
    CategoryID: int = Field(ge=1)
    Mode: ModeLiteral = "percent"
    Percent: Decimal = Field(Decimal("0"), ge=0)
    FixedAmount: Optional[Decimal] = Field(None, ge=0)


class EstimationSave(BaseModel):
    TargetPct: Decimal = Field(ge=0, le=100)
    categories: List[EstimationCategoryIn] = []


class CategoryEdit(BaseModel):
    Percent: Optional[Decimal] = Field(None, ge=0)
    FixedAmount: Optional[Decimal] = Field(None, ge=0)


class ModeSwitch(BaseModel):
    Mode: ModeLiteral


class EstimationLineRead(BaseModel):
    CategoryID: int
    Mode: ModeLiteral
    Percent: Figure
    FixedAmount: Optional[Money] = None
    share: Figure
    amount: Money


class EstimationRead(BaseModel):
    EstimationID: int
    JobID: int
    TargetPct: Figure
    TargetAmount: Money
    UpdatedAt: Optional[datetime] = None
    categories: List[EstimationLineRead]
    total_percent: Figure
    delta_percent: Figure
    allocated_amount: Money
    unallocated_amount: Money

    @classmethod
    def build(cls, est, summary: AllocationSummary) -> "EstimationRead":
        lines = [
            EstimationLineRead(
                CategoryID=row.CategoryID,
                Mode=row.Mode,
                Percent=row.Percent,
                FixedAmount=row.FixedAmount,
                share=fig.share,
                amount=fig.amount,
            )
            for row, fig in zip(est.categories, summary.lines)
        ]
        return cls(
            EstimationID=est.EstimationID,
            JobID=est.JobID,
            TargetPct=est.TargetPct,
            TargetAmount=est.TargetAmount,
            UpdatedAt=est.UpdatedAt,
            categories=lines,
            total_percent=summary.total_share,
            delta_percent=summary.delta_share,
            allocated_amount=summary.allocated_amount,
            unallocated_amount=summary.unallocated_amount,
        )
