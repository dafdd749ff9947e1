# app/schemas/finance.py
"""
Serialized form of a FinancialSnapshot. This is the only place the
snapshot figures are rounded (cents, half-up).
"""
from datetime import date
from typing import Dict, List

from pydantic import BaseModel

from app.schemas.common import Figure, Money


class MetricRead(BaseModel):
    target: Money
    realized: Money
    variance: Money


class CategoryPurchasesRead(BaseModel):
    category_id: int
    code: str
    label: str
    allocated: Money
    ordered: Money
    received: Money


class SnapshotRead(BaseModel):
    job_id: int
    job_number: str
    job_label: str
    computed_on: date
    purchase_target_pct: Figure
    metrics: Dict[str, MetricRead]
    labor_hours_by_phase: Dict[str, MetricRead]
    ratios: Dict[str, Dict[str, Figure]]
    breakdown: Dict[str, Dict[str, Money]]
    overhead_workdays: Dict[str, int]
    categories: List[CategoryPurchasesRead]

    @classmethod
    def build(cls, snap) -> "SnapshotRead":
        def metric(m):
            return MetricRead(target=m.target, realized=m.realized, variance=m.variance)

        return cls(
            job_id=snap.job_id,
            job_number=snap.job_number,
            job_label=snap.job_label,
            computed_on=snap.computed_on,
            purchase_target_pct=snap.purchase_target_pct,
            metrics={k: metric(m) for k, m in snap.metrics.items()},
            labor_hours_by_phase={k: metric(m) for k, m in snap.labor_hours_by_phase.items()},
            ratios={"target": snap.target.ratios(), "realized": snap.realized.ratios()},
            breakdown={"target": snap.target.breakdown(), "realized": snap.realized.breakdown()},
            overhead_workdays={
                "target": snap.target.overhead_workdays,
                "realized": snap.realized.overhead_workdays,
            },
            categories=[
                CategoryPurchasesRead(
                    category_id=c.category_id, code=c.code, label=c.label,
                    allocated=c.allocated, ordered=c.ordered, received=c.received,
                )
                for c in snap.categories
            ],
        )
