# app/routers/purchase.py
from typing import List, Optional, Literal
from datetime import date

from fastapi import APIRouter, Depends, File, Header, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.core.api import ok
from app.core.db import get_db
from app.core.security import require_roles
from app.models import AppUser, PurchaseCategory
from app.schemas.purchase import CategoryRead, POCreate, PORead, POReceive, POUpdate

from app.services.purchase_service import (
    list_pos,
    get_po,
    create_po,
    update_po,
    validate_po,
    cancel_po,
    receive_po,
    delete_po,
    attach_file,
    detach_file,
)

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])

Reader = require_roles("viewer", "operator", "manager", "admin")
Writer = require_roles("operator", "manager", "admin")

StatusQuery = Optional[Literal["PENDING", "VALIDATED", "RECEIVED", "CANCELLED"]]


# --- LIST ---
@router.get("", response_model=List[PORead])
def list_purchase_orders(
    status_s: StatusQuery = Query(None, description="effective status"),
    job_id: Optional[int] = Query(None, ge=1),
    category_id: Optional[int] = Query(None, ge=1),
    supplier: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    sort: str = Query("-OrderID"),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Reader),
):
    return list_pos(
        db,
        status_s=status_s,
        job_id=job_id,
        category_id=category_id,
        supplier=supplier,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
        sort=sort,
    )


@router.get("/categories", response_model=List[CategoryRead])
def list_categories(db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return db.query(PurchaseCategory).order_by(PurchaseCategory.Code).all()


@router.get("/{po_id}", response_model=PORead)
def read_purchase_order(po_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Reader)):
    return get_po(db, po_id)


# --- CREATE / EDIT ---
@router.post("", response_model=PORead, status_code=status.HTTP_201_CREATED)
def create_purchase_order(payload: POCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return create_po(
        db,
        job_id=payload.JobID,
        category_id=payload.CategoryID,
        supplier_name=payload.SupplierName,
        amount_ht=payload.AmountHT,
        order_date=payload.OrderDate,
        requested_delivery_date=payload.RequestedDeliveryDate,
        comment=payload.Comment,
        operator=current,
    )


@router.patch("/{po_id}", response_model=PORead)
def update_purchase_order(
    po_id: int, payload: POUpdate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    return update_po(db, po_id, operator=current, **payload.model_dump(exclude_unset=True))


# --- WORKFLOW ---
@router.post("/{po_id}/validate", response_model=PORead)
def validate_purchase_order(po_id: int, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return validate_po(db, po_id=po_id, operator=current)


@router.post("/{po_id}/cancel", response_model=PORead)
def cancel_purchase_order(po_id: int, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return cancel_po(db, po_id=po_id, operator=current)


@router.post("/{po_id}/receive", response_model=PORead)
def receive_purchase_order(
    po_id: int,
    payload: Optional[POReceive] = None,
    db: Session = Depends(get_db),
    current: AppUser = Depends(Writer),
):
    """Records the reception date (today when omitted); only a validated order can be received."""
    reception_date = payload.ReceptionDate if payload else None
    return receive_po(db, po_id=po_id, reception_date=reception_date, operator=current)


# --- DELETE ---
@router.delete("/{po_id}")
def delete_purchase_order(
    po_id: int,
    x_delete_credential: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    current: AppUser = Depends(Writer),
):
    """Validated and received orders need an admin and the X-Delete-Credential header."""
    delete_po(db, po_id=po_id, credential=x_delete_credential, operator=current)
    return ok({"deleted": po_id})


# --- ATTACHMENT ---
@router.post("/{po_id}/attachment", response_model=PORead)
async def upload_attachment(
    po_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    _: AppUser = Depends(Writer),
):
    content = await file.read()
    return attach_file(db, po_id=po_id, filename=file.filename, content=content)


@router.delete("/{po_id}/attachment", response_model=PORead)
def remove_attachment(po_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    return detach_file(db, po_id=po_id)
