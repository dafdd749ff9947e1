# app/routers/jobs.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.security import require_roles
from app.models import AppUser
from app.schemas.job import (
    JobCreate, JobRead, JobUpdate, QuoteCreate, QuoteRead, QuoteStatusIn, TimeEntryCreate, TimeEntryRead,
)
from app.services import job_service as svc

router = APIRouter(prefix="/jobs", tags=["jobs"])

Reader = require_roles("viewer", "operator", "manager", "admin")
Writer = require_roles("operator", "manager", "admin")
Manager = require_roles("manager", "admin")


@router.get("", response_model=List[JobRead])
def list_jobs(
    q: Optional[str] = Query(None, description="number, label or client"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Reader),
):
    return svc.list_jobs(db, q=q, skip=skip, limit=limit)


@router.get("/{job_id}", response_model=JobRead)
def read_job(job_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return svc.get_job(db, job_id)


@router.post("", response_model=JobRead, status_code=status.HTTP_201_CREATED)
def create_job(payload: JobCreate, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    data = payload.model_dump()
    return svc.create_job(db, number=data.pop("Number"), label=data.pop("Label"), **data)


@router.patch("/{job_id}", response_model=JobRead)
def update_job(job_id: int, payload: JobUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return svc.update_job(db, job_id, **payload.model_dump(exclude_unset=True))


# --- quotes ---
@router.get("/{job_id}/quotes", response_model=List[QuoteRead])
def list_quotes(job_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return svc.list_quotes(db, job_id)


@router.post("/{job_id}/quotes", response_model=QuoteRead, status_code=status.HTTP_201_CREATED)
def add_quote(job_id: int, payload: QuoteCreate, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return svc.add_quote(db, job_id, number=payload.Number, amount_ht=payload.AmountHT, status_s=payload.Status_s)


@router.post("/quotes/{quote_id}/status", response_model=QuoteRead)
def set_quote_status(
    quote_id: int, payload: QuoteStatusIn, db: Session = Depends(get_db), _: AppUser = Depends(Manager)
):
    return svc.set_quote_status(db, quote_id, payload.Status_s)


# --- time entries ---
@router.get("/{job_id}/time-entries", response_model=List[TimeEntryRead])
def list_time_entries(job_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return svc.list_time_entries(db, job_id)


@router.post("/{job_id}/time-entries", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
def add_time_entry(
    job_id: int, payload: TimeEntryCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    return svc.add_time_entry(
        db,
        job_id,
        phase=payload.Phase,
        hours=payload.Hours,
        entry_date=payload.EntryDate,
        operator=payload.Operator or current.Username,
    )
