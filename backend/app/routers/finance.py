# app/routers/finance.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.api import ok
from app.core.db import get_db
from app.core.security import require_roles
from app.models import AppUser
from app.schemas.finance import SnapshotRead
from app.services.finance_service import build_financial_snapshot

router = APIRouter(prefix="/finance", tags=["finance"])

Reader = require_roles("viewer", "operator", "manager", "admin")


@router.get("/jobs/{job_id}/snapshot")
def job_snapshot(
    job_id: int,
    as_of: Optional[date] = Query(None, description="reference day for open jobs, default today"),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Reader),
):
    snap = build_financial_snapshot(db, job_id, today=as_of)
    return ok(SnapshotRead.build(snap), meta={"computed_on": snap.computed_on.isoformat()})
