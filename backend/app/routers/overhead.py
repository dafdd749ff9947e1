# app/routers/overhead.py
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.api import ok, list_meta
from app.core.db import get_db
from app.core.security import require_roles
from app.models import AppUser
from app.schemas.overhead import OverheadCreate, OverheadPeriodRead, OverheadRead, OverheadUpdate
from app.services import overhead_service as svc

router = APIRouter(prefix="/overhead", tags=["overhead"])

Reader = require_roles("viewer", "operator", "manager", "admin")
Manager = require_roles("manager", "admin")


@router.get("/items", response_model=List[OverheadRead])
def list_overhead_items(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Reader),
):
    return svc.list_items(db, include_inactive=include_inactive)


@router.get("/items/{item_id}", response_model=OverheadRead)
def read_overhead_item(item_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return svc.get_item(db, item_id)


@router.post("/items", response_model=OverheadRead, status_code=status.HTTP_201_CREATED)
def create_overhead_item(payload: OverheadCreate, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return svc.create_item(
        db,
        label=payload.Label,
        monthly_ht=payload.MonthlyAmountHT,
        monthly_ttc=payload.MonthlyAmountTTC,
        category=payload.Category,
        display_order=payload.DisplayOrder,
        start_date=payload.StartDate,
        end_date=payload.EndDate,
        comment=payload.Comment,
    )


@router.patch("/items/{item_id}", response_model=OverheadRead)
def update_overhead_item(
    item_id: int, payload: OverheadUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Manager)
):
    changes = payload.model_dump(exclude_unset=True)
    version = changes.pop("Version", None)
    return svc.update_item(db, item_id, expected_version=version, **changes)


@router.post("/items/{item_id}/deactivate", response_model=OverheadRead)
def deactivate_overhead_item(item_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return svc.deactivate_item(db, item_id)


@router.post("/items/{item_id}/reactivate", response_model=OverheadRead)
def reactivate_overhead_item(item_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return svc.reactivate_item(db, item_id)


@router.delete("/items/{item_id}")
def delete_overhead_item(item_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    svc.delete_item(db, item_id)
    return ok({"deleted": item_id})


# =========================
# STATS / PERIOD
# =========================
@router.get("/stats")
def overhead_stats(db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return ok(svc.get_overhead_stats(db))


@router.get("/period")
def overhead_for_period(
    start: date = Query(..., description="first day, e.g. 2025-03-03"),
    end: date = Query(..., description="last day (included)"),
    hours_per_day: Optional[Decimal] = Query(None, gt=0),
    work_week_days: Optional[int] = Query(None, description="5, 6 or 7"),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Reader),
):
    period = svc.compute_overhead_for_period(
        db, start=start, end=end, hours_per_day=hours_per_day, work_week_days=work_week_days,
    )
    data = OverheadPeriodRead.model_validate(period)
    meta = {**list_meta(period.breakdown), "start": start.isoformat(), "end": end.isoformat()}
    return ok(data, meta=meta)


@router.post("/sweep")
def run_expiration_sweep(db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    return ok({"deactivated": svc.deactivate_expired_items(db)})
