# backend/app/domain/allocation.py
"""
Purchase budget allocation across categories.

The job's target purchase amount T is split between categories, each one
either as a percentage share of T or as a fixed amount. Shares are not
required to add up to 100: the summary reports the delta instead.

Amounts and shares are whole numbers (ROUND_HALF_UP), the way the
estimation screens have always displayed them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from .constants import WHOLE

PERCENT = "percent"
AMOUNT = "amount"
HUNDRED = Decimal("100")


def _round(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def target_amount(revenue: Decimal, pct: Decimal) -> Decimal:
    """T = round(R * p / 100)."""
    return _round(Decimal(revenue) * Decimal(pct) / HUNDRED)


def amount_for_share(target: Decimal, share: Decimal) -> Decimal:
    return _round(Decimal(target) * Decimal(share) / HUNDRED)


def share_for_amount(target: Decimal, amount: Decimal) -> Decimal:
    """Display-only share back-computed from a fixed amount (0 when T is 0)."""
    if not target:
        return Decimal("0")
    return _round(Decimal(amount) / Decimal(target) * HUNDRED)


@dataclass
class CategoryFigures:
    category_id: int
    mode: str
    share: Decimal
    amount: Decimal


@dataclass
class AllocationSummary:
    target: Decimal
    lines: List[CategoryFigures] = field(default_factory=list)
    total_share: Decimal = Decimal("0")
    allocated_amount: Decimal = Decimal("0")

    @property
    def delta_share(self) -> Decimal:
        # > 0 over-allocated, < 0 under-allocated
        return self.total_share - HUNDRED

    @property
    def unallocated_amount(self) -> Decimal:
        return self.target - self.allocated_amount


def line_figures(target: Decimal, category_id: int, mode: str, percent: Decimal,
                 fixed_amount: Optional[Decimal]) -> CategoryFigures:
    if mode == AMOUNT:
        amount = Decimal(fixed_amount or 0)
        return CategoryFigures(category_id, mode, share_for_amount(target, amount), amount)
    share = Decimal(percent or 0)
    return CategoryFigures(category_id, mode, share, amount_for_share(target, share))


def summarize(target: Decimal, lines: Iterable) -> AllocationSummary:
    """``lines`` are EstimationCategory-like rows (CategoryID, Mode, Percent, FixedAmount)."""
    summary = AllocationSummary(target=Decimal(target))
    for ln in lines:
        fig = line_figures(summary.target, ln.CategoryID, ln.Mode, ln.Percent, ln.FixedAmount)
        summary.lines.append(fig)
        summary.total_share += fig.share
        summary.allocated_amount += fig.amount
    return summary


def switch_to_amount(line, target: Decimal) -> None:
    """Freeze the currently computed amount; Percent is kept for switching back."""
    if line.Mode == AMOUNT:
        return
    line.FixedAmount = amount_for_share(target, line.Percent)
    line.Mode = AMOUNT


def switch_to_percent(line) -> None:
    """Drop the fixed amount and go back to the remembered percentage."""
    if line.Mode == PERCENT:
        return
    line.FixedAmount = None
    line.Mode = PERCENT
