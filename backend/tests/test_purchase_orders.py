import os
import threading
from datetime import date
from decimal import Decimal

import pytest

from app.core import security
from app.core.db import SessionLocal
from app.core.errors import InvalidTransitionError, NotFoundError, UnauthorizedError, ValidationError
from app.core.security import set_override_secret
from app.domain.order_states import effective_status
from app.models import Job, OrderCounter, PurchaseOrder
from app.services import purchase_service as svc

DAY = date(2025, 3, 10)


def _po(db, job, categories, amount="1000.00", **kw):
    kw.setdefault("today", DAY)
    return svc.create_po(
        db,
        job_id=job.JobID,
        category_id=categories[0].CategoryID,
        supplier_name="Scierie du Lac",
        amount_ht=Decimal(amount),
        **kw,
    )


# ---- numbering ----
def test_numbers_follow_year_sequence(db, job, categories):
    numbers = [_po(db, job, categories).Number for _ in range(3)]
    assert numbers == ["BDC-2025-001", "BDC-2025-002", "BDC-2025-003"]


def test_sequence_restarts_each_year(db, job, categories):
    _po(db, job, categories)
    _po(db, job, categories)
    first_2026 = _po(db, job, categories, today=date(2026, 1, 2))
    assert first_2026.Number == "BDC-2026-001"
    assert db.get(OrderCounter, 2025).LastSeq == 2


def test_order_date_defaults_to_creation_day(db, job, categories):
    po = _po(db, job, categories)
    assert po.OrderDate == DAY
    assert po.Status_s == "PENDING"


def test_concurrent_creations_get_distinct_numbers(db, job, categories):
    job_id, category_id = job.JobID, categories[0].CategoryID
    numbers, errors = [], []
    lock = threading.Lock()

    def worker():
        session = SessionLocal()
        try:
            po = svc.create_po(
                session, job_id=job_id, category_id=category_id,
                supplier_name="Parallel", amount_ht=Decimal("10"), today=DAY,
            )
            with lock:
                numbers.append(po.Number)
        except Exception as exc:  # collected and asserted below
            with lock:
                errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(numbers) == [f"BDC-2025-{i:03d}" for i in range(1, 9)]


# ---- validation ----
def test_create_rejects_bad_input(db, job, categories):
    with pytest.raises(ValidationError):
        _po(db, job, categories, amount="-5")
    with pytest.raises(ValidationError):
        svc.create_po(db, job_id=job.JobID, category_id=999, supplier_name="X", amount_ht=1, today=DAY)
    with pytest.raises(ValidationError):
        svc.create_po(db, job_id=job.JobID, category_id=categories[0].CategoryID, supplier_name="  ", amount_ht=1)
    with pytest.raises(NotFoundError):
        svc.create_po(db, job_id=999, category_id=categories[0].CategoryID, supplier_name="X", amount_ht=1)
    assert db.query(PurchaseOrder).count() == 0


# ---- transitions ----
def test_happy_path_to_received(db, job, categories):
    po = _po(db, job, categories)
    po = svc.validate_po(db, po_id=po.OrderID)
    assert po.Status_s == "VALIDATED"
    po = svc.receive_po(db, po_id=po.OrderID, reception_date=date(2025, 3, 20))
    assert po.ReceptionDate == date(2025, 3, 20)
    assert effective_status(po) == "RECEIVED"


def test_receive_defaults_to_today(db, job, categories):
    po = svc.validate_po(db, po_id=_po(db, job, categories).OrderID)
    po = svc.receive_po(db, po_id=po.OrderID)
    assert po.ReceptionDate is not None


def test_validated_order_cannot_be_cancelled(db, job, categories):
    po = svc.validate_po(db, po_id=_po(db, job, categories).OrderID)
    with pytest.raises(InvalidTransitionError):
        svc.cancel_po(db, po_id=po.OrderID)
    assert db.get(PurchaseOrder, po.OrderID).Status_s == "VALIDATED"


@pytest.mark.parametrize("steps,action", [
    ([], "receive_po"),
    (["cancel_po"], "validate_po"),
    (["cancel_po"], "receive_po"),
    (["validate_po"], "validate_po"),
    (["validate_po", "receive_po"], "validate_po"),
    (["validate_po", "receive_po"], "cancel_po"),
])
def test_illegal_transitions(db, job, categories, steps, action):
    po = _po(db, job, categories)
    for step in steps:
        getattr(svc, step)(db, po_id=po.OrderID)
    with pytest.raises(InvalidTransitionError):
        getattr(svc, action)(db, po_id=po.OrderID)


def test_reception_date_wins_over_stored_status(db, job, categories):
    po = _po(db, job, categories)
    po.ReceptionDate = date(2025, 3, 11)
    db.commit()
    assert effective_status(po) == "RECEIVED"
    assert [p.OrderID for p in svc.list_pos(db, status_s="RECEIVED")] == [po.OrderID]
    assert svc.list_pos(db, status_s="PENDING") == []


def test_terminal_orders_reject_edits(db, job, categories):
    po = _po(db, job, categories)
    svc.update_po(db, po.OrderID, SupplierName="Menuiserie Martin", AmountHT=Decimal("1500"))
    svc.cancel_po(db, po_id=po.OrderID)
    with pytest.raises(InvalidTransitionError):
        svc.update_po(db, po.OrderID, Comment="too late")


# ---- job totals hook ----
def test_job_totals_follow_order_lifecycle(db, job, categories):
    a = _po(db, job, categories, amount="1000")
    b = _po(db, job, categories, amount="250")
    _po(db, job, categories, amount="999")  # stays pending

    svc.validate_po(db, po_id=a.OrderID)
    svc.validate_po(db, po_id=b.OrderID)
    svc.receive_po(db, po_id=b.OrderID, reception_date=DAY)

    db.expire_all()
    refreshed = db.get(Job, job.JobID)
    assert refreshed.TotalOrdered == Decimal("1250")
    assert refreshed.TotalReceived == Decimal("250")

    set_override_secret(db, "s3cret!")
    db.commit()
    svc.delete_po(db, po_id=b.OrderID, credential="s3cret!")
    db.expire_all()
    refreshed = db.get(Job, job.JobID)
    assert refreshed.TotalOrdered == Decimal("1000")
    assert refreshed.TotalReceived == Decimal("0")


# ---- guarded deletion ----
def test_pending_and_cancelled_delete_without_credential(db, job, categories):
    a = _po(db, job, categories)
    b = svc.cancel_po(db, po_id=_po(db, job, categories).OrderID)
    svc.delete_po(db, po_id=a.OrderID)
    svc.delete_po(db, po_id=b.OrderID)
    assert db.query(PurchaseOrder).count() == 0


def test_validated_delete_needs_credential(db, job, categories):
    po = svc.validate_po(db, po_id=_po(db, job, categories).OrderID)
    set_override_secret(db, "s3cret!")
    db.commit()

    with pytest.raises(UnauthorizedError):
        svc.delete_po(db, po_id=po.OrderID)
    with pytest.raises(UnauthorizedError):
        svc.delete_po(db, po_id=po.OrderID, credential="wrong")
    assert db.get(PurchaseOrder, po.OrderID) is not None

    svc.delete_po(db, po_id=po.OrderID, credential="s3cret!")
    assert db.get(PurchaseOrder, po.OrderID) is None


def test_delete_needs_override_role_when_operator_given(db, job, categories, make_user):
    po = svc.validate_po(db, po_id=_po(db, job, categories).OrderID)
    set_override_secret(db, "s3cret!")
    db.commit()
    clerk = make_user("clerk", "operator")
    admin = make_user("boss", "admin")

    with pytest.raises(UnauthorizedError):
        svc.delete_po(db, po_id=po.OrderID, credential="s3cret!", operator=clerk)
    svc.delete_po(db, po_id=po.OrderID, credential="s3cret!", operator=admin)
    assert db.get(PurchaseOrder, po.OrderID) is None


def test_env_secret_used_until_one_is_stored(db, job, categories, monkeypatch):
    po = svc.validate_po(db, po_id=_po(db, job, categories).OrderID)

    with pytest.raises(UnauthorizedError):
        svc.delete_po(db, po_id=po.OrderID, credential="from-env")

    monkeypatch.setattr(security, "ORDER_DELETE_SECRET", "from-env")
    svc.delete_po(db, po_id=po.OrderID, credential="from-env")
    assert db.get(PurchaseOrder, po.OrderID) is None


def test_delete_removes_attachment(db, job, categories, tmp_path, monkeypatch):
    monkeypatch.setattr(svc.config, "UPLOAD_DIR", str(tmp_path))
    po = _po(db, job, categories)
    po = svc.attach_file(db, po_id=po.OrderID, filename="devis fournisseur.pdf", content=b"%PDF-1.4")
    path = po.AttachmentPath
    assert path.endswith("BDC-2025-001_devis_fournisseur.pdf")
    with open(path, "rb") as fh:
        assert fh.read() == b"%PDF-1.4"

    svc.delete_po(db, po_id=po.OrderID)
    assert not os.path.exists(path)



def test_detach_clears_path_and_removes_file(db, job, categories, tmp_path, monkeypatch):
    monkeypatch.setattr(svc.config, "UPLOAD_DIR", str(tmp_path))
    po = _po(db, job, categories)
    po = svc.attach_file(db, po_id=po.OrderID, filename="mauvais.pdf", content=b"%PDF-1.4")
    path = po.AttachmentPath

    po = svc.detach_file(db, po_id=po.OrderID)
    assert po.AttachmentPath is None
    assert not os.path.exists(path)

    # nothing attached any more: a second call is a no-op
    assert svc.detach_file(db, po_id=po.OrderID).AttachmentPath is None


def test_detach_survives_a_missing_file(db, job, categories, tmp_path, monkeypatch):
    monkeypatch.setattr(svc.config, "UPLOAD_DIR", str(tmp_path))
    po = _po(db, job, categories)
    po = svc.attach_file(db, po_id=po.OrderID, filename="bon.pdf", content=b"x")
    os.remove(po.AttachmentPath)

    assert svc.detach_file(db, po_id=po.OrderID).AttachmentPath is None

# ---- listing ----
def test_list_filters(db, job, categories):
    a = _po(db, job, categories)
    svc.create_po(
        db, job_id=job.JobID, category_id=categories[1].CategoryID,
        supplier_name="Quincaillerie Centrale", amount_ht=10, today=DAY,
    )
    svc.validate_po(db, po_id=a.OrderID)

    assert len(svc.list_pos(db, job_id=job.JobID)) == 2
    assert [p.OrderID for p in svc.list_pos(db, status_s="VALIDATED")] == [a.OrderID]
    assert len(svc.list_pos(db, supplier="centrale")) == 1
    assert len(svc.list_pos(db, category_id=categories[1].CategoryID)) == 1
    numbers = [p.Number for p in svc.list_pos(db, sort="Number")]
    assert numbers == sorted(numbers)
