from __future__ import annotations
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Callable, List, Optional
import logging
import os
import re

from sqlalchemy import text, update, select, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import config
from app.core.errors import (
    ValidationError, NotFoundError, InvalidTransitionError, UnauthorizedError, ConflictError,
)
from app.core.security import may_override, verify_override_secret
from app.domain import clock
from app.domain.constants import MONEY_PLACES, ORDER_NUMBER_FORMAT, ORDER_NUMBER_MAX_ATTEMPTS
from app.domain.order_states import (
    RECEIVED, PENDING, COMMITTED_STATUSES, TERMINAL_STATUSES,
    effective_status, next_status, requires_override,
)
from app.models import AppUser, Job, OrderCounter, PurchaseCategory, PurchaseOrder

logger = logging.getLogger(__name__)

ENTITY = "PurchaseOrder"

EDITABLE_FIELDS = (
    "SupplierName", "AmountHT", "CategoryID", "OrderDate", "RequestedDeliveryDate", "Comment",
)


def _dialect(db: Session) -> str:
    try:
        return db.bind.dialect.name
    except AttributeError:
        return "unknown"


def _who(operator: Optional[AppUser]) -> Optional[str]:
    return operator.Username if operator is not None else None


def _to_money(val, field_name: str = "AmountHT") -> Decimal:
    try:
        d = val if isinstance(val, Decimal) else Decimal(str(val))
        d = d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a decimal amount.", entity=ENTITY, field=field_name)
    if d < 0:
        raise ValidationError(f"{field_name} must not be negative.", entity=ENTITY, field=field_name)
    return d


# ---- job-level aggregates (update hooks) ----
def recompute_job_purchase_totals(db: Session, job_id: int) -> None:
    """Job.TotalOrdered / Job.TotalReceived from the job's orders. Caller commits."""
    job = db.get(Job, job_id)
    if job is None:
        return
    ordered = Decimal("0")
    received = Decimal("0")
    for po in db.query(PurchaseOrder).filter(PurchaseOrder.JobID == job_id).all():
        st = effective_status(po)
        if st in COMMITTED_STATUSES:
            ordered += Decimal(po.AmountHT)
        if st == RECEIVED:
            received += Decimal(po.AmountHT)
    job.TotalOrdered = ordered
    job.TotalReceived = received


# every committed order mutation runs these, inside the same transaction
ORDER_UPDATE_HOOKS: List[Callable[[Session, int], None]] = [recompute_job_purchase_totals]


def _run_update_hooks(db: Session, job_id: int) -> None:
    db.flush()
    for hook in ORDER_UPDATE_HOOKS:
        hook(db, job_id)


# ---- numbering ----
def format_order_number(year: int, seq: int, prefix: Optional[str] = None) -> str:
    return ORDER_NUMBER_FORMAT.format(prefix=prefix or config.ORDER_NUMBER_PREFIX, year=year, seq=seq)


def reserve_order_number(db: Session, year: int) -> str:
    """
    Take the next sequence of ``year`` inside the caller's transaction.

    The UPDATE holds the counter row (or, on SQLite, the database) until the
    caller commits, so concurrent creators are serialized. The first order of
    a year inserts the row; a concurrent first insert surfaces as an
    IntegrityError that create_po retries.
    """
    res = db.execute(
        update(OrderCounter)
        .where(OrderCounter.Year == year)
        .values(LastSeq=OrderCounter.LastSeq + 1)
    )
    if res.rowcount == 0:
        db.add(OrderCounter(Year=year, LastSeq=1))
        db.flush()
    seq = db.execute(select(OrderCounter.LastSeq).where(OrderCounter.Year == year)).scalar_one()
    return format_order_number(year, seq)


# ---- reads ----
def _lock_po_for_update(db: Session, po_id: int) -> Optional[PurchaseOrder]:
    """
    Lock the order row and read it fresh.
    MSSQL uses UPDLOCK+ROWLOCK; other dialects SELECT ... FOR UPDATE
    (a no-op on SQLite, where the writer lock serializes instead).
    """
    if _dialect(db) == "mssql":
        db.execute(
            text("SELECT OrderID FROM PurchaseOrder WITH (UPDLOCK, ROWLOCK) WHERE OrderID=:oid"),
            {"oid": po_id},
        )
        po = db.get(PurchaseOrder, po_id)
        if po:
            db.refresh(po)
        return po
    return (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.OrderID == po_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def get_po(db: Session, po_id: int) -> PurchaseOrder:
    po = db.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found.", entity=ENTITY, entity_id=po_id)
    return po


def list_pos(
    db: Session,
    *,
    status_s: Optional[str] = None,
    job_id: Optional[int] = None,
    category_id: Optional[int] = None,
    supplier: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    sort: str = "-OrderID",
) -> List[PurchaseOrder]:
    q = db.query(PurchaseOrder)

    if status_s == RECEIVED:
        q = q.filter(or_(PurchaseOrder.ReceptionDate.isnot(None), PurchaseOrder.Status_s == RECEIVED))
    elif status_s:
        q = q.filter(and_(PurchaseOrder.ReceptionDate.is_(None), PurchaseOrder.Status_s == status_s))
    if job_id:
        q = q.filter(PurchaseOrder.JobID == job_id)
    if category_id:
        q = q.filter(PurchaseOrder.CategoryID == category_id)
    if supplier:
        q = q.filter(PurchaseOrder.SupplierName.ilike(f"%{supplier.strip()}%"))
    if date_from:
        q = q.filter(PurchaseOrder.OrderDate >= date_from)
    if date_to:
        q = q.filter(PurchaseOrder.OrderDate <= date_to)

    order_fields = {
        "OrderID": PurchaseOrder.OrderID,
        "Number": PurchaseOrder.Number,
        "OrderDate": PurchaseOrder.OrderDate,
        "AmountHT": PurchaseOrder.AmountHT,
        "RequestedDeliveryDate": PurchaseOrder.RequestedDeliveryDate,
    }
    desc = sort.startswith("-")
    key = sort[1:] if desc else sort
    col = order_fields.get(key, PurchaseOrder.OrderID)
    q = q.order_by(col.desc() if desc else col.asc())

    return q.offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


# ---- create / edit ----
def _check_category(db: Session, category_id) -> int:
    if category_id is None:
        raise ValidationError("CategoryID is required.", entity=ENTITY, field="CategoryID")
    if not db.get(PurchaseCategory, int(category_id)):
        raise ValidationError(f"Purchase category {category_id} does not exist.", entity=ENTITY, field="CategoryID")
    return int(category_id)


def create_po(
    db: Session,
    *,
    job_id: int,
    category_id: int,
    supplier_name: str,
    amount_ht,
    order_date: Optional[date] = None,
    requested_delivery_date: Optional[date] = None,
    comment: Optional[str] = None,
    operator: Optional[AppUser] = None,
    today: Optional[date] = None,
) -> PurchaseOrder:
    supplier = (supplier_name or "").strip()
    if not supplier:
        raise ValidationError("SupplierName is required.", entity=ENTITY, field="SupplierName")
    amount = _to_money(amount_ht)
    if not db.get(Job, job_id):
        raise NotFoundError(f"Job {job_id} not found.", entity="Job", entity_id=job_id)
    category_id = _check_category(db, category_id)

    created_on = today or clock.today()
    year = created_on.year

    for attempt in range(1, ORDER_NUMBER_MAX_ATTEMPTS + 1):
        try:
            number = reserve_order_number(db, year)
            po = PurchaseOrder(
                Number=number,
                SupplierName=supplier,
                JobID=job_id,
                CategoryID=category_id,
                AmountHT=amount,
                OrderDate=order_date or created_on,
                RequestedDeliveryDate=requested_delivery_date,
                Comment=comment,
                Status_s=PENDING,
                CreatedBy=_who(operator),
            )
            db.add(po)
            _run_update_hooks(db, job_id)
            db.commit()
            db.refresh(po)
            logger.info("purchase order %s created for job %s", po.Number, job_id)
            return po
        except IntegrityError:
            db.rollback()
            logger.warning("order number collision for year %s (attempt %s/%s)", year, attempt, ORDER_NUMBER_MAX_ATTEMPTS)

    raise ConflictError(
        f"Could not reserve a purchase order number for {year}, try again.", entity=ENTITY, field="Number"
    )


def update_po(db: Session, po_id: int, *, operator: Optional[AppUser] = None, **changes) -> PurchaseOrder:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}.", entity=ENTITY, entity_id=po_id)

    try:
        po = _lock_po_for_update(db, po_id)
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found.", entity=ENTITY, entity_id=po_id)
        current = effective_status(po)
        if current in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Order {po.Number} is {current} and can no longer be edited.",
                entity=ENTITY, entity_id=po_id, field="Status_s",
            )

        if "SupplierName" in changes:
            changes["SupplierName"] = (changes["SupplierName"] or "").strip()
            if not changes["SupplierName"]:
                raise ValidationError("SupplierName is required.", entity=ENTITY, entity_id=po_id, field="SupplierName")
        if "AmountHT" in changes:
            changes["AmountHT"] = _to_money(changes["AmountHT"])
        if "CategoryID" in changes:
            changes["CategoryID"] = _check_category(db, changes["CategoryID"])
        if "OrderDate" in changes and changes["OrderDate"] is None:
            raise ValidationError("OrderDate cannot be cleared.", entity=ENTITY, entity_id=po_id, field="OrderDate")

        for key, value in changes.items():
            setattr(po, key, value)
        _run_update_hooks(db, po.JobID)
        db.commit()
        db.refresh(po)
        logger.info("purchase order %s updated by %s", po.Number, _who(operator))
        return po
    except Exception:
        db.rollback()
        raise


# ---- transitions ----
def _transition(db: Session, po_id: int, action: str, operator: Optional[AppUser], **stamp) -> PurchaseOrder:
    try:
        po = _lock_po_for_update(db, po_id)
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found.", entity=ENTITY, entity_id=po_id)

        current = effective_status(po)
        try:
            target = next_status(current, action)
        except ValueError:
            raise InvalidTransitionError(
                f"Cannot {action} order {po.Number}: it is {current}.",
                entity=ENTITY, entity_id=po_id, field="Status_s",
            )

        po.Status_s = target
        for key, value in stamp.items():
            setattr(po, key, value)
        _run_update_hooks(db, po.JobID)
        db.commit()
        db.refresh(po)
        logger.info("purchase order %s: %s -> %s (by %s)", po.Number, current, target, _who(operator))
        return po
    except Exception:
        db.rollback()
        raise


def validate_po(db: Session, *, po_id: int, operator: Optional[AppUser] = None) -> PurchaseOrder:
    """PENDING -> VALIDATED."""
    return _transition(
        db, po_id, "validate", operator,
        ValidatedBy=_who(operator), ValidatedAt=clock.utcnow(),
    )


def cancel_po(db: Session, *, po_id: int, operator: Optional[AppUser] = None) -> PurchaseOrder:
    """PENDING -> CANCELLED. A validated order can no longer be cancelled."""
    return _transition(
        db, po_id, "cancel", operator,
        CancelledBy=_who(operator), CancelledAt=clock.utcnow(),
    )


def receive_po(
    db: Session, *, po_id: int, reception_date: Optional[date] = None, operator: Optional[AppUser] = None
) -> PurchaseOrder:
    """VALIDATED -> RECEIVED; recording the reception date is the transition."""
    return _transition(
        db, po_id, "receive", operator,
        ReceptionDate=reception_date or clock.today(), ReceivedBy=_who(operator),
    )


# ---- delete ----
def _remove_file_quietly(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("could not remove attachment %s", path, exc_info=True)


def delete_po(
    db: Session,
    *,
    po_id: int,
    credential: Optional[str] = None,
    operator: Optional[AppUser] = None,
) -> None:
    """
    PENDING and CANCELLED orders are deleted straight away. VALIDATED and
    RECEIVED ones need the administrative override: an operator allowed to
    override (when one is given) and a credential matching the stored secret.
    """
    try:
        po = _lock_po_for_update(db, po_id)
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found.", entity=ENTITY, entity_id=po_id)

        if requires_override(po):
            if operator is not None and not may_override(operator):
                raise UnauthorizedError(
                    f"Order {po.Number} is {effective_status(po)}: only an administrator may delete it.",
                    entity=ENTITY, entity_id=po_id, field="operator",
                )
            if not verify_override_secret(db, credential):
                raise UnauthorizedError(
                    f"Order {po.Number} is {effective_status(po)}: missing or incorrect deletion credential.",
                    entity=ENTITY, entity_id=po_id, field="credential",
                )

        number, job_id, attachment = po.Number, po.JobID, po.AttachmentPath
        db.delete(po)
        _run_update_hooks(db, job_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("purchase order %s deleted by %s", number, _who(operator))
    _remove_file_quietly(attachment)


# ---- attachment ----
_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def attach_file(db: Session, *, po_id: int, filename: str, content: bytes) -> PurchaseOrder:
    po = get_po(db, po_id)
    if not content:
        raise ValidationError("Empty file.", entity=ENTITY, entity_id=po_id, field="file")

    folder = os.path.join(config.UPLOAD_DIR, "purchase-orders")
    os.makedirs(folder, exist_ok=True)
    safe = _SAFE_NAME.sub("_", os.path.basename(filename or "document")) or "document"
    path = os.path.join(folder, f"{po.Number}_{safe}")
    with open(path, "wb") as fh:
        fh.write(content)

    previous = po.AttachmentPath
    po.AttachmentPath = path
    db.commit()
    db.refresh(po)
    if previous and previous != path:
        _remove_file_quietly(previous)
    return po


def detach_file(db: Session, *, po_id: int) -> PurchaseOrder:
    """Clear the attachment of an order; the file itself goes best effort."""
    po = get_po(db, po_id)
    previous = po.AttachmentPath
    if not previous:
        return po

    po.AttachmentPath = None
    db.commit()
    db.refresh(po)
    logger.info("attachment of purchase order %s removed", po.Number)
    _remove_file_quietly(previous)
    return po
