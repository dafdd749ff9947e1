from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ValidationError, NotFoundError, ConflictError
from app.domain import clock
from app.domain.constants import LABOR_PHASES, QUOTE_STATUSES
from app.models import Job, Quote, TimeEntry

logger = logging.getLogger(__name__)

JOB_FIELDS = (
    "Label", "Client", "TargetRevenue", "TargetHoursFab", "TargetHoursSer", "TargetHoursPose",
    "HourlyRate", "PlannedStart", "PlannedEnd", "ActualStart", "ActualEnd",
)
_DECIMAL_FIELDS = ("TargetRevenue", "TargetHoursFab", "TargetHoursSer", "TargetHoursPose", "HourlyRate")


def _non_negative(val, field_name: str, entity: str = "Job") -> Decimal:
    try:
        d = val if isinstance(val, Decimal) else Decimal(str(val))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number.", entity=entity, field=field_name)
    if d < 0:
        raise ValidationError(f"{field_name} must not be negative.", entity=entity, field=field_name)
    return d


def _check_dates(job: Job) -> None:
    if job.PlannedStart and job.PlannedEnd and job.PlannedEnd < job.PlannedStart:
        raise ValidationError("PlannedEnd must be on or after PlannedStart.", entity="Job", entity_id=job.JobID, field="PlannedEnd")
    if job.ActualStart and job.ActualEnd and job.ActualEnd < job.ActualStart:
        raise ValidationError("ActualEnd must be on or after ActualStart.", entity="Job", entity_id=job.JobID, field="ActualEnd")


def get_job(db: Session, job_id: int) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise NotFoundError(f"Job {job_id} not found.", entity="Job", entity_id=job_id)
    return job


def list_jobs(db: Session, *, q: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[Job]:
    query = db.query(Job)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter((Job.Number.ilike(like)) | (Job.Label.ilike(like)) | (Job.Client.ilike(like)))
    return query.order_by(Job.JobID.desc()).offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def create_job(db: Session, *, number: str, label: str, **fields) -> Job:
    number = (number or "").strip()
    label = (label or "").strip()
    if not number:
        raise ValidationError("Number is required.", entity="Job", field="Number")
    if not label:
        raise ValidationError("Label is required.", entity="Job", field="Label")

    unknown = set(fields) - set(JOB_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}.", entity="Job")
    for key in _DECIMAL_FIELDS:
        if fields.get(key) is not None:
            fields[key] = _non_negative(fields[key], key)
        else:
            fields.pop(key, None)

    job = Job(Number=number, Label=label, **fields)
    _check_dates(job)
    db.add(job)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Job number {number} already exists.", entity="Job", field="Number")
    db.refresh(job)
    logger.info("job %s created", number)
    return job


def update_job(db: Session, job_id: int, **changes) -> Job:
    unknown = set(changes) - set(JOB_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}.", entity="Job", entity_id=job_id)
    job = get_job(db, job_id)
    for key, value in changes.items():
        if key in _DECIMAL_FIELDS:
            value = _non_negative(value if value is not None else 0, key)
        setattr(job, key, value)
    try:
        _check_dates(job)
    except ValidationError:
        db.rollback()
        raise
    db.commit()
    db.refresh(job)
    return job


# ---- quotes ----
def add_quote(db: Session, job_id: int, *, number: str, amount_ht, status_s: str = "DRAFT") -> Quote:
    get_job(db, job_id)
    status_s = (status_s or "DRAFT").upper()
    if status_s not in QUOTE_STATUSES:
        raise ValidationError(f"Status_s must be one of {', '.join(QUOTE_STATUSES)}.", entity="Quote", field="Status_s")
    if not (number or "").strip():
        raise ValidationError("Number is required.", entity="Quote", field="Number")
    quote = Quote(JobID=job_id, Number=number.strip(), AmountHT=_non_negative(amount_ht, "AmountHT", "Quote"), Status_s=status_s)
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote


def set_quote_status(db: Session, quote_id: int, status_s: str) -> Quote:
    quote = db.get(Quote, quote_id)
    if not quote:
        raise NotFoundError(f"Quote {quote_id} not found.", entity="Quote", entity_id=quote_id)
    status_s = (status_s or "").upper()
    if status_s not in QUOTE_STATUSES:
        raise ValidationError(f"Status_s must be one of {', '.join(QUOTE_STATUSES)}.", entity="Quote", entity_id=quote_id, field="Status_s")
    quote.Status_s = status_s
    db.commit()
    db.refresh(quote)
    return quote


def list_quotes(db: Session, job_id: int) -> List[Quote]:
    get_job(db, job_id)
    return db.query(Quote).filter(Quote.JobID == job_id).order_by(Quote.QuoteID).all()


# ---- time entries ----
def add_time_entry(
    db: Session, job_id: int, *, phase: str, hours, entry_date: Optional[date] = None, operator: Optional[str] = None
) -> TimeEntry:
    get_job(db, job_id)
    phase = (phase or "").upper()
    if phase not in LABOR_PHASES:
        raise ValidationError(f"Phase must be one of {', '.join(LABOR_PHASES)}.", entity="TimeEntry", field="Phase")
    h = _non_negative(hours, "Hours", "TimeEntry")
    if h == 0:
        raise ValidationError("Hours must be > 0.", entity="TimeEntry", field="Hours")
    entry = TimeEntry(JobID=job_id, Phase=phase, Hours=h, EntryDate=entry_date or clock.today(), Operator=operator)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def list_time_entries(db: Session, job_id: int) -> List[TimeEntry]:
    get_job(db, job_id)
    return db.query(TimeEntry).filter(TimeEntry.JobID == job_id).order_by(TimeEntry.EntryDate, TimeEntry.EntryID).all()
