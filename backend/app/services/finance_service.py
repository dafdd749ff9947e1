"""
Job financial snapshot: targets against realized figures.

Every figure is kept unrounded here; schemas.finance rounds to cents when
the snapshot is serialized. Nothing is written except the overhead
expiration sweep run before the overhead totals are read.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core import config
from app.domain import clock
from app.domain.allocation import summarize
from app.domain.constants import LABOR_PHASES, REVENUE_QUOTE_STATUSES
from app.domain.order_states import COMMITTED_STATUSES, RECEIVED, effective_status
from app.models import PurchaseCategory, PurchaseOrder, Quote, TimeEntry
from app.services import overhead_service
from app.services.estimation_service import find_estimation
from app.services.job_service import get_job

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Job column holding the target hours of each phase
TARGET_HOURS_FIELDS = {"FAB": "TargetHoursFab", "SER": "TargetHoursSer", "POSE": "TargetHoursPose"}


@dataclass
class Metric:
    target: Decimal = ZERO
    realized: Decimal = ZERO

    @property
    def variance(self) -> Decimal:
        return self.realized - self.target


@dataclass
class Side:
    """One side (target or realized) of the snapshot."""
    revenue: Decimal = ZERO
    purchases: Decimal = ZERO
    labor_hours: Dict[str, Decimal] = field(default_factory=dict)
    labor_cost: Decimal = ZERO
    overhead: Decimal = ZERO
    overhead_workdays: int = 0

    @property
    def total_labor_hours(self) -> Decimal:
        return sum(self.labor_hours.values(), ZERO)

    @property
    def margin(self) -> Decimal:
        return self.revenue - self.purchases - self.overhead - self.labor_cost

    def ratios(self) -> Dict[str, Decimal]:
        return {
            "purchases": pct_of(self.purchases, self.revenue),
            "margin": pct_of(self.margin, self.revenue),
            "labor": pct_of(self.labor_cost, self.revenue),
            "overhead": pct_of(self.overhead, self.revenue),
        }

    def breakdown(self) -> Dict[str, Decimal]:
        margin = self.margin
        return {
            "purchases": self.purchases,
            "labor": self.labor_cost,
            "overhead": self.overhead,
            "margin": margin if margin > 0 else ZERO,
            "loss": -margin if margin < 0 else ZERO,
        }


@dataclass
class CategoryPurchases:
    category_id: int
    code: str
    label: str
    allocated: Decimal = ZERO
    ordered: Decimal = ZERO
    received: Decimal = ZERO


@dataclass
class FinancialSnapshot:
    job_id: int
    job_number: str
    job_label: str
    computed_on: date
    target: Side
    realized: Side
    purchase_target_pct: Decimal = ZERO
    categories: List[CategoryPurchases] = field(default_factory=list)

    @property
    def metrics(self) -> Dict[str, Metric]:
        t, r = self.target, self.realized
        return {
            "revenue": Metric(t.revenue, r.revenue),
            "purchases": Metric(t.purchases, r.purchases),
            "labor_hours": Metric(t.total_labor_hours, r.total_labor_hours),
            "labor_cost": Metric(t.labor_cost, r.labor_cost),
            "overhead": Metric(t.overhead, r.overhead),
            "margin": Metric(t.margin, r.margin),
        }

    @property
    def labor_hours_by_phase(self) -> Dict[str, Metric]:
        return {
            phase: Metric(self.target.labor_hours.get(phase, ZERO), self.realized.labor_hours.get(phase, ZERO))
            for phase in LABOR_PHASES
        }


def pct_of(part: Decimal, base: Decimal) -> Decimal:
    if not base:
        return ZERO
    return part / base * HUNDRED


def _overhead_between(monthly_ht: Decimal, start: Optional[date], end: Optional[date]) -> Tuple[Decimal, int]:
    if not start or not end or end < start:
        return ZERO, 0
    workdays = overhead_service.count_workdays(start, end, config.DEFAULT_WORK_WEEK_DAYS)
    return overhead_service.prorate(monthly_ht, workdays), workdays


def build_financial_snapshot(db: Session, job_id: int, today: Optional[date] = None) -> FinancialSnapshot:
    """
    Target vs realized figures of one job. Raises NotFoundError when the job
    does not exist; any other failure propagates as is.
    """
    today = today or clock.today()
    job = get_job(db, job_id)
    rate = Decimal(job.HourlyRate or 0)

    # the sweep always runs against the real calendar, never the as_of day
    overhead_service.deactivate_expired_items(db)
    monthly_ht, _ = overhead_service.active_monthly_totals(db)

    estimation = find_estimation(db, job_id)
    orders = db.query(PurchaseOrder).filter(PurchaseOrder.JobID == job_id).all()

    # ---- target ----
    target = Side(revenue=Decimal(job.TargetRevenue or 0))
    if estimation is not None:
        target.purchases = Decimal(estimation.TargetAmount)
    target.labor_hours = {p: Decimal(getattr(job, TARGET_HOURS_FIELDS[p]) or 0) for p in LABOR_PHASES}
    target.labor_cost = target.total_labor_hours * rate
    target.overhead, target.overhead_workdays = _overhead_between(monthly_ht, job.PlannedStart, job.PlannedEnd)

    # ---- realized ----
    realized = Side()
    quotes = (
        db.query(Quote)
        .filter(Quote.JobID == job_id, Quote.Status_s.in_(REVENUE_QUOTE_STATUSES))
        .all()
    )
    realized.revenue = sum((Decimal(q.AmountHT) for q in quotes), ZERO)
    realized.purchases = sum(
        (Decimal(po.AmountHT) for po in orders if effective_status(po) == RECEIVED), ZERO
    )
    hours = {p: ZERO for p in LABOR_PHASES}
    for entry in db.query(TimeEntry).filter(TimeEntry.JobID == job_id).all():
        hours[entry.Phase] = hours.get(entry.Phase, ZERO) + Decimal(entry.Hours)
    realized.labor_hours = hours
    realized.labor_cost = realized.total_labor_hours * rate
    if job.ActualStart and job.ActualStart <= today:
        realized.overhead, realized.overhead_workdays = _overhead_between(
            monthly_ht, job.ActualStart, job.ActualEnd or today
        )

    snapshot = FinancialSnapshot(
        job_id=job.JobID,
        job_number=job.Number,
        job_label=job.Label,
        computed_on=today,
        target=target,
        realized=realized,
        purchase_target_pct=Decimal(estimation.TargetPct) if estimation is not None else ZERO,
    )
    snapshot.categories = _category_purchases(db, estimation, orders)
    return snapshot


def _category_purchases(db: Session, estimation, orders) -> List[CategoryPurchases]:
    rows: Dict[int, CategoryPurchases] = {}
    labels = {c.CategoryID: c for c in db.query(PurchaseCategory).all()}

    def row(category_id: int) -> CategoryPurchases:
        if category_id not in rows:
            cat = labels.get(category_id)
            rows[category_id] = CategoryPurchases(
                category_id=category_id,
                code=cat.Code if cat else str(category_id),
                label=cat.Label if cat else str(category_id),
            )
        return rows[category_id]

    if estimation is not None:
        for fig in summarize(Decimal(estimation.TargetAmount), estimation.categories).lines:
            row(fig.category_id).allocated = fig.amount

    for po in orders:
        st = effective_status(po)
        if st in COMMITTED_STATUSES:
            row(po.CategoryID).ordered += Decimal(po.AmountHT)
        if st == RECEIVED:
            row(po.CategoryID).received += Decimal(po.AmountHT)

    return list(rows.values())
