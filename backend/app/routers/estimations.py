# app/routers/estimations.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.api import ok
from app.core.db import get_db
from app.core.security import require_roles
from app.models import AppUser
from app.schemas.estimation import CategoryEdit, EstimationRead, EstimationSave, ModeSwitch
from app.services import estimation_service as svc

router = APIRouter(prefix="/jobs/{job_id}/estimation", tags=["estimations"])

Reader = require_roles("viewer", "operator", "manager", "admin")
Manager = require_roles("manager", "admin")


def _read(est) -> EstimationRead:
    return EstimationRead.build(est, svc.summarize(est))


@router.get("", response_model=EstimationRead)
def read_estimation(job_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return _read(svc.get_estimation(db, job_id))


@router.put("", response_model=EstimationRead)
def save_estimation(
    job_id: int, payload: EstimationSave, db: Session = Depends(get_db), _: AppUser = Depends(Manager)
):
    """Replaces the whole estimation, categories included."""
    est = svc.save_estimation(
        db,
        job_id,
        target_pct=payload.TargetPct,
        categories=[c.model_dump() for c in payload.categories],
    )
    return _read(est)


@router.delete("")
def delete_estimation(job_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Manager)):
    svc.delete_estimation(db, job_id)
    return ok({"deleted": job_id})


@router.patch("/categories/{category_id}", response_model=EstimationRead)
def edit_category(
    job_id: int,
    category_id: int,
    payload: CategoryEdit,
    db: Session = Depends(get_db),
    _: AppUser = Depends(Manager),
):
    est = svc.update_category(
        db, job_id, category_id, percent=payload.Percent, fixed_amount=payload.FixedAmount
    )
    return _read(est)


@router.post("/categories/{category_id}/mode", response_model=EstimationRead)
def switch_mode(
    job_id: int,
    category_id: int,
    payload: ModeSwitch,
    db: Session = Depends(get_db),
    _: AppUser = Depends(Manager),
):
    return _read(svc.switch_category_mode(db, job_id, category_id, payload.Mode))
