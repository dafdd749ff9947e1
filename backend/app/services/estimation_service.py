from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from app.core.errors import ValidationError, NotFoundError
from app.domain import allocation
from app.domain.allocation import AMOUNT, PERCENT, AllocationSummary
from app.domain.constants import ALLOCATION_MODES
from app.models import EstimationCategory, Job, PurchaseCategory, PurchaseEstimation

logger = logging.getLogger(__name__)

ENTITY = "PurchaseEstimation"


def _decimal(val, field_name: str, *, entity_id=None) -> Decimal:
    try:
        d = val if isinstance(val, Decimal) else Decimal(str(val))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number.", entity=ENTITY, entity_id=entity_id, field=field_name)
    if not d.is_finite():
        raise ValidationError(f"{field_name} must be a number.", entity=ENTITY, entity_id=entity_id, field=field_name)
    return d


def _target_pct(val, *, entity_id=None) -> Decimal:
    pct = _decimal(val, "TargetPct", entity_id=entity_id)
    if pct < 0 or pct > 100:
        raise ValidationError("TargetPct must be between 0 and 100.", entity=ENTITY, entity_id=entity_id, field="TargetPct")
    return pct


def _non_negative(val, field_name: str, *, entity_id=None) -> Decimal:
    d = _decimal(val, field_name, entity_id=entity_id)
    if d < 0:
        raise ValidationError(f"{field_name} must not be negative.", entity=ENTITY, entity_id=entity_id, field=field_name)
    return d


def _get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise NotFoundError(f"Job {job_id} not found.", entity="Job", entity_id=job_id)
    return job


def get_estimation(db: Session, job_id: int) -> PurchaseEstimation:
    _get_job(db, job_id)
    est = db.query(PurchaseEstimation).filter(PurchaseEstimation.JobID == job_id).one_or_none()
    if not est:
        raise NotFoundError(f"No purchase estimation for job {job_id}.", entity=ENTITY, entity_id=job_id)
    return est


def find_estimation(db: Session, job_id: int) -> Optional[PurchaseEstimation]:
    return db.query(PurchaseEstimation).filter(PurchaseEstimation.JobID == job_id).one_or_none()


def summarize(est: PurchaseEstimation) -> AllocationSummary:
    return allocation.summarize(Decimal(est.TargetAmount), est.categories)


def _build_lines(db: Session, categories: Iterable[dict], target: Decimal, job_id: int) -> List[EstimationCategory]:
    known = {cid for (cid,) in db.query(PurchaseCategory.CategoryID).all()}
    seen = set()
    lines: List[EstimationCategory] = []

    for position, entry in enumerate(categories or []):
        try:
            category_id = int(entry["CategoryID"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Each category needs a CategoryID.", entity=ENTITY, entity_id=job_id, field="CategoryID")
        if category_id not in known:
            raise ValidationError(f"Purchase category {category_id} does not exist.", entity=ENTITY, entity_id=job_id, field="CategoryID")
        if category_id in seen:
            raise ValidationError(f"Category {category_id} appears twice.", entity=ENTITY, entity_id=job_id, field="CategoryID")
        seen.add(category_id)

        mode = (entry.get("Mode") or PERCENT).lower()
        if mode not in ALLOCATION_MODES:
            raise ValidationError("Mode must be 'percent' or 'amount'.", entity=ENTITY, entity_id=job_id, field="Mode")

        percent = _non_negative(entry.get("Percent") or 0, "Percent", entity_id=job_id)
        fixed = entry.get("FixedAmount")
        if mode == AMOUNT:
            # an amount line without an explicit amount freezes the current share
            fixed = allocation.amount_for_share(target, percent) if fixed is None else _non_negative(fixed, "FixedAmount", entity_id=job_id)
        else:
            fixed = None

        lines.append(EstimationCategory(
            CategoryID=category_id, Position=position, Mode=mode, Percent=percent, FixedAmount=fixed,
        ))
    return lines


def save_estimation(db: Session, job_id: int, *, target_pct, categories: Iterable[dict] = ()) -> PurchaseEstimation:
    """
    Create or fully replace the estimation of a job, categories included.
    ``categories`` entries are dicts with CategoryID, Mode, Percent, FixedAmount.
    """
    job = _get_job(db, job_id)
    pct = _target_pct(target_pct, entity_id=job_id)
    target = allocation.target_amount(Decimal(job.TargetRevenue or 0), pct)
    lines = _build_lines(db, categories, target, job_id)

    try:
        est = find_estimation(db, job_id)
        if est is None:
            est = PurchaseEstimation(JobID=job_id, TargetPct=pct, TargetAmount=target)
            db.add(est)
        else:
            est.TargetPct = pct
            est.TargetAmount = target
            est.categories.clear()
            # old lines must be gone before the unique (EstimationID, CategoryID) is checked again
            db.flush()
        est.categories.extend(lines)
        db.commit()
        db.refresh(est)
    except Exception:
        db.rollback()
        logger.exception("saving purchase estimation for job %s failed", job_id)
        raise

    logger.info("purchase estimation saved for job %s (%s%%, %s categories)", job_id, pct, len(lines))
    return est


def delete_estimation(db: Session, job_id: int) -> None:
    est = get_estimation(db, job_id)
    db.delete(est)
    db.commit()
    logger.info("purchase estimation of job %s deleted", job_id)


def _get_line(est: PurchaseEstimation, category_id: int) -> EstimationCategory:
    for line in est.categories:
        if line.CategoryID == category_id:
            return line
    raise NotFoundError(
        f"Category {category_id} is not part of this estimation.",
        entity="EstimationCategory", entity_id=category_id,
    )


def update_category(
    db: Session, job_id: int, category_id: int, *, percent=None, fixed_amount=None
) -> PurchaseEstimation:
    """Edit one category; the others are left as they are."""
    est = get_estimation(db, job_id)
    line = _get_line(est, category_id)

    if percent is not None:
        line.Percent = _non_negative(percent, "Percent", entity_id=job_id)
    if fixed_amount is not None:
        if line.Mode != AMOUNT:
            raise ValidationError(
                "FixedAmount can only be set on a category in amount mode.",
                entity="EstimationCategory", entity_id=category_id, field="FixedAmount",
            )
        line.FixedAmount = _non_negative(fixed_amount, "FixedAmount", entity_id=job_id)

    db.commit()
    db.refresh(est)
    return est


def switch_category_mode(db: Session, job_id: int, category_id: int, mode: str) -> PurchaseEstimation:
    mode = (mode or "").lower()
    if mode not in ALLOCATION_MODES:
        raise ValidationError("Mode must be 'percent' or 'amount'.", entity="EstimationCategory", entity_id=category_id, field="Mode")

    est = get_estimation(db, job_id)
    line = _get_line(est, category_id)
    if mode == AMOUNT:
        allocation.switch_to_amount(line, Decimal(est.TargetAmount))
    else:
        allocation.switch_to_percent(line)

    db.commit()
    db.refresh(est)
    return est
