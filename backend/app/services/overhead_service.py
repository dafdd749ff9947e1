# backend/app/services/overhead_service.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core import config
from app.core.errors import ValidationError, NotFoundError, ConflictError
from app.domain import clock
from app.domain.constants import (
    MONEY_PLACES,
    OVERHEAD_CATEGORIES,
    REFERENCE_MONTH_WORKDAYS,
    WORK_WEEK_CHOICES,
)
from app.models import OverheadItem

logger = logging.getLogger(__name__)

ENTITY = "OverheadItem"

# fields an operator may edit through update_item
EDITABLE_FIELDS = (
    "Label", "MonthlyAmountHT", "MonthlyAmountTTC", "Category",
    "DisplayOrder", "StartDate", "EndDate", "Comment", "IsActive",
)


def _money(val, field_name: str) -> Decimal:
    try:
        d = val if isinstance(val, Decimal) else Decimal(str(val))
        d = d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a decimal amount.", entity=ENTITY, field=field_name)
    if d < 0:
        raise ValidationError(f"{field_name} must not be negative.", entity=ENTITY, field=field_name)
    return d


def _round_money(val: Decimal) -> Decimal:
    return val.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _check_window(start: Optional[date], end: Optional[date], item_id=None) -> None:
    if start and end and end < start:
        raise ValidationError(
            "EndDate must be on or after StartDate.", entity=ENTITY, entity_id=item_id, field="EndDate"
        )


def _check_category(category: str, item_id=None) -> str:
    cat = (category or "AUTRE").strip().upper()
    if cat not in OVERHEAD_CATEGORIES:
        raise ValidationError(
            f"Unknown overhead category '{category}'.", entity=ENTITY, entity_id=item_id, field="Category"
        )
    return cat


def get_item(db: Session, item_id: int) -> OverheadItem:
    item = db.get(OverheadItem, item_id)
    if not item:
        raise NotFoundError(f"Overhead item {item_id} not found.", entity=ENTITY, entity_id=item_id)
    return item


def list_items(db: Session, *, include_inactive: bool = False) -> List[OverheadItem]:
    q = db.query(OverheadItem)
    if not include_inactive:
        q = q.filter(OverheadItem.IsActive.is_(True))
    return q.order_by(OverheadItem.DisplayOrder.asc(), OverheadItem.Label.asc()).all()


def create_item(
    db: Session,
    *,
    label: str,
    monthly_ht,
    monthly_ttc,
    category: str = "AUTRE",
    display_order: int = 0,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    comment: Optional[str] = None,
    is_active: bool = True,
) -> OverheadItem:
    label = (label or "").strip()
    if not label:
        raise ValidationError("Label is required.", entity=ENTITY, field="Label")
    _check_window(start_date, end_date)

    item = OverheadItem(
        Label=label,
        MonthlyAmountHT=_money(monthly_ht, "MonthlyAmountHT"),
        MonthlyAmountTTC=_money(monthly_ttc, "MonthlyAmountTTC"),
        Category=_check_category(category),
        DisplayOrder=int(display_order or 0),
        StartDate=start_date,
        EndDate=end_date,
        Comment=comment,
        IsActive=bool(is_active),
    )
    try:
        db.add(item)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"An overhead item labelled '{label}' already exists.", entity=ENTITY, field="Label")
    db.refresh(item)
    return item


def update_item(db: Session, item_id: int, *, expected_version: Optional[int] = None, **changes) -> OverheadItem:
    """
    Partial update. ``expected_version`` (the Version the caller read) turns a
    concurrent edit into a ConflictError instead of a silent overwrite.
    """
    item = get_item(db, item_id)
    if expected_version is not None and expected_version != item.Version:
        raise ConflictError(
            "Overhead item was modified by someone else, reload it.",
            entity=ENTITY, entity_id=item_id, field="Version",
        )

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown field(s): {', '.join(sorted(unknown))}.", entity=ENTITY, entity_id=item_id
        )

    if "Label" in changes:
        changes["Label"] = (changes["Label"] or "").strip()
        if not changes["Label"]:
            raise ValidationError("Label is required.", entity=ENTITY, entity_id=item_id, field="Label")
    for money_field in ("MonthlyAmountHT", "MonthlyAmountTTC"):
        if money_field in changes:
            changes[money_field] = _money(changes[money_field], money_field)
    if "Category" in changes:
        changes["Category"] = _check_category(changes["Category"], item_id)

    _check_window(
        changes.get("StartDate", item.StartDate),
        changes.get("EndDate", item.EndDate),
        item_id,
    )

    for key, value in changes.items():
        setattr(item, key, value)

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError(
            "Overhead item was modified by someone else, reload it.",
            entity=ENTITY, entity_id=item_id, field="Version",
        )
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            f"An overhead item labelled '{changes.get('Label')}' already exists.",
            entity=ENTITY, entity_id=item_id, field="Label",
        )
    db.refresh(item)
    return item


def deactivate_item(db: Session, item_id: int) -> OverheadItem:
    """Soft delete."""
    return update_item(db, item_id, IsActive=False)


def reactivate_item(db: Session, item_id: int) -> OverheadItem:
    return update_item(db, item_id, IsActive=True)


def delete_item(db: Session, item_id: int) -> None:
    """Hard delete."""
    item = get_item(db, item_id)
    db.delete(item)
    db.commit()


# ---- expiration sweep ----
def deactivate_expired_items(db: Session, *, today: Optional[date] = None) -> int:
    """
    Deactivate every active item whose EndDate has passed. Each item is
    committed on its own; a failing item is logged and skipped.
    Returns the number of items deactivated.
    """
    today = today or clock.today()
    expired_ids = [
        row.ItemID
        for row in db.query(OverheadItem.ItemID)
        .filter(
            OverheadItem.IsActive.is_(True),
            OverheadItem.EndDate.isnot(None),
            OverheadItem.EndDate < today,
        )
        .all()
    ]

    done = 0
    for item_id in expired_ids:
        try:
            item = db.get(OverheadItem, item_id)
            if item is None or not item.IsActive:
                continue
            item.IsActive = False
            db.commit()
            done += 1
        except SQLAlchemyError:
            db.rollback()
            logger.warning("expiration sweep: could not deactivate overhead item %s", item_id, exc_info=True)

    if done:
        logger.info("expiration sweep: %s expired overhead item(s) deactivated", done)
    return done


def get_overhead_stats(db: Session, *, today: Optional[date] = None) -> dict:
    deactivate_expired_items(db, today=today)

    total = db.query(func.count(OverheadItem.ItemID)).scalar() or 0
    active = db.query(func.count(OverheadItem.ItemID)).filter(OverheadItem.IsActive.is_(True)).scalar() or 0
    monthly_ht, monthly_ttc = active_monthly_totals(db)
    return {
        "total": int(total),
        "active": int(active),
        "inactive": int(total) - int(active),
        "monthlyTotalHT": _round_money(monthly_ht),
        "monthlyTotalTTC": _round_money(monthly_ttc),
    }


# ---- proration ----
def _validate_calendar(hours_per_day, work_week_days) -> Tuple[Decimal, int]:
    try:
        hours = Decimal(str(hours_per_day))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("hours_per_day must be a number.", field="hours_per_day")
    if hours <= 0:
        raise ValidationError("hours_per_day must be > 0.", field="hours_per_day")
    try:
        week = int(work_week_days)
    except (TypeError, ValueError):
        raise ValidationError("work_week_days must be 5, 6 or 7.", field="work_week_days")
    if week not in WORK_WEEK_CHOICES:
        raise ValidationError("work_week_days must be 5, 6 or 7.", field="work_week_days")
    return hours, week


def count_workdays(start: date, end: date, work_week_days: int = 5) -> int:
    """
    Days of [start, end] (both included) falling in the work week:
    5 -> Mon..Fri, 6 -> Mon..Sat, 7 -> every day. No holiday calendar.
    """
    if end < start:
        raise ValidationError("end must be on or after start.", field="end")
    if work_week_days not in WORK_WEEK_CHOICES:
        raise ValidationError("work_week_days must be 5, 6 or 7.", field="work_week_days")

    days = 0
    current = start
    while current <= end:
        if current.weekday() < work_week_days:
            days += 1
        current += timedelta(days=1)
    return days


def prorate(monthly_amount: Decimal, workdays: int) -> Decimal:
    """Unrounded share of a monthly amount for ``workdays`` against the 20-day reference month."""
    return Decimal(monthly_amount) * Decimal(workdays) / REFERENCE_MONTH_WORKDAYS


def active_monthly_totals(db: Session) -> Tuple[Decimal, Decimal]:
    # summed in Python: SQL SUM over DECIMAL comes back as float on SQLite
    items = list_items(db)
    ht = sum((Decimal(i.MonthlyAmountHT) for i in items), Decimal("0"))
    ttc = sum((Decimal(i.MonthlyAmountTTC) for i in items), Decimal("0"))
    return ht, ttc


@dataclass
class OverheadLine:
    item_id: int
    label: str
    category: str
    monthly_ht: Decimal
    period_ht: Decimal


@dataclass
class OverheadPeriod:
    start: date
    end: date
    work_week_days: int
    hours_per_day: Decimal
    workdays: int
    total_hours: Decimal
    monthly_total_ht: Decimal
    monthly_total_ttc: Decimal
    period_total_ht: Decimal
    period_total_ttc: Decimal
    breakdown: List[OverheadLine] = field(default_factory=list)


def compute_overhead_for_period(
    db: Session,
    *,
    start: date,
    end: date,
    hours_per_day=None,
    work_week_days: Optional[int] = None,
    today: Optional[date] = None,
) -> OverheadPeriod:
    """
    Overhead cost of the active catalog for [start, end].

    period = monthly total * workdays / 20, rounded to cents only at the end;
    breakdown rows are rounded one by one, so their sum may differ from the
    aggregate by a few cents.
    """
    hours, week = _validate_calendar(
        config.DEFAULT_HOURS_PER_DAY if hours_per_day is None else hours_per_day,
        config.DEFAULT_WORK_WEEK_DAYS if work_week_days is None else work_week_days,
    )
    if end < start:
        raise ValidationError("end must be on or after start.", field="end")

    deactivate_expired_items(db, today=today)

    items = list_items(db)
    workdays = count_workdays(start, end, week)
    monthly_ht, monthly_ttc = active_monthly_totals(db)

    return OverheadPeriod(
        start=start,
        end=end,
        work_week_days=week,
        hours_per_day=hours,
        workdays=workdays,
        total_hours=hours * workdays,
        monthly_total_ht=_round_money(monthly_ht),
        monthly_total_ttc=_round_money(monthly_ttc),
        period_total_ht=_round_money(prorate(monthly_ht, workdays)),
        period_total_ttc=_round_money(prorate(monthly_ttc, workdays)),
        breakdown=[
            OverheadLine(
                item_id=i.ItemID,
                label=i.Label,
                category=i.Category,
                monthly_ht=Decimal(i.MonthlyAmountHT),
                period_ht=_round_money(prorate(Decimal(i.MonthlyAmountHT), workdays)),
            )
            for i in items
        ],
    )


# ---- default catalog ----
DEFAULT_OVERHEAD_ITEMS = [
    {"Label": "Toupie", "MonthlyAmountTTC": "270.00", "MonthlyAmountHT": "225.00", "Category": "MATERIEL", "DisplayOrder": 1},
    {"Label": "Crédit bail gerbeur 1", "MonthlyAmountTTC": "228.00", "MonthlyAmountHT": "190.00", "Category": "CREDIT_BAIL", "DisplayOrder": 2, "EndDate": date(2025, 12, 31)},
    {"Label": "Crédit bail gerbeur 2", "MonthlyAmountTTC": "145.00", "MonthlyAmountHT": "120.83", "Category": "CREDIT_BAIL", "DisplayOrder": 3, "EndDate": date(2026, 6, 30)},
    {"Label": "Crédit bail Benne", "MonthlyAmountTTC": "600.00", "MonthlyAmountHT": "500.00", "Category": "CREDIT_BAIL", "DisplayOrder": 4, "EndDate": date(2026, 1, 31)},
    {"Label": "Crédit classique Boxer", "MonthlyAmountTTC": "600.00", "MonthlyAmountHT": "500.00", "Category": "CREDIT_CLASSIQUE", "DisplayOrder": 5},
    {"Label": "Loyer atelier", "MonthlyAmountTTC": "2160.00", "MonthlyAmountHT": "1800.00", "Category": "LOCATION", "DisplayOrder": 6},
    {"Label": "Charges atelier + électricité", "MonthlyAmountTTC": "600.00", "MonthlyAmountHT": "500.00", "Category": "CHARGES", "DisplayOrder": 7},
    {"Label": "Assurance atelier", "MonthlyAmountTTC": "320.00", "MonthlyAmountHT": "266.67", "Category": "ASSURANCE", "DisplayOrder": 8},
    {"Label": "Crédit banque", "MonthlyAmountTTC": "850.00", "MonthlyAmountHT": "850.00", "Category": "BANQUE", "DisplayOrder": 9},
    {"Label": "Logiciel comptable", "MonthlyAmountTTC": "45.00", "MonthlyAmountHT": "37.50", "Category": "LOGICIEL", "DisplayOrder": 10},
    {"Label": "Expert-comptable", "MonthlyAmountTTC": "440.00", "MonthlyAmountHT": "366.67", "Category": "SERVICE", "DisplayOrder": 11},
    {"Label": "Téléphone", "MonthlyAmountTTC": "102.00", "MonthlyAmountHT": "85.00", "Category": "COMMUNICATION", "DisplayOrder": 12},
    {"Label": "Internet", "MonthlyAmountTTC": "52.96", "MonthlyAmountHT": "44.13", "Category": "COMMUNICATION", "DisplayOrder": 13},
    {"Label": "Carburant", "MonthlyAmountTTC": "450.00", "MonthlyAmountHT": "375.00", "Category": "VEHICULE", "DisplayOrder": 14},
    {"Label": "Péage", "MonthlyAmountTTC": "125.00", "MonthlyAmountHT": "104.17", "Category": "VEHICULE", "DisplayOrder": 15},
    {"Label": "Faux frais", "MonthlyAmountTTC": "300.00", "MonthlyAmountHT": "250.00", "Category": "AUTRE", "DisplayOrder": 16},
]


def seed_default_items(db: Session) -> int:
    """Insert the default catalog entries that are missing (matched by label)."""
    existing = {label for (label,) in db.query(OverheadItem.Label).all()}
    created = 0
    for data in DEFAULT_OVERHEAD_ITEMS:
        if data["Label"] in existing:
            continue
        row = dict(data)
        row["MonthlyAmountHT"] = Decimal(row["MonthlyAmountHT"])
        row["MonthlyAmountTTC"] = Decimal(row["MonthlyAmountTTC"])
        db.add(OverheadItem(**row))
        created += 1
    db.commit()
    return created
