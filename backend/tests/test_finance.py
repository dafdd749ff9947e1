from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import NotFoundError
from app.domain import clock
from app.models import Job, OverheadItem
from app.schemas.finance import SnapshotRead
from app.services import estimation_service, job_service, overhead_service, purchase_service
from app.services.finance_service import build_financial_snapshot

TODAY = date(2025, 9, 12)  # a Friday


@pytest.fixture()
def running_job(db, job, categories):
    bois, quinc = categories[0].CategoryID, categories[1].CategoryID
    job.PlannedStart = date(2025, 9, 1)
    job.PlannedEnd = date(2025, 9, 30)
    job.ActualStart = date(2025, 9, 1)
    db.commit()

    overhead_service.create_item(db, label="Loyer", monthly_ht=Decimal("2000"), monthly_ttc=Decimal("2400"))
    estimation_service.save_estimation(db, job.JobID, target_pct=30, categories=[
        {"CategoryID": bois, "Percent": 60},
        {"CategoryID": quinc, "Percent": 40},
    ])

    job_service.add_quote(db, job.JobID, number="DEV-1", amount_ht=Decimal("40000"), status_s="VALIDATED")
    job_service.add_quote(db, job.JobID, number="DEV-2", amount_ht=Decimal("20000"), status_s="DONE")
    job_service.add_quote(db, job.JobID, number="DEV-3", amount_ht=Decimal("5000"), status_s="DRAFT")

    received = purchase_service.create_po(
        db, job_id=job.JobID, category_id=bois, supplier_name="Scierie", amount_ht=Decimal("12000"), today=TODAY,
    )
    purchase_service.validate_po(db, po_id=received.OrderID)
    purchase_service.receive_po(db, po_id=received.OrderID, reception_date=TODAY)
    validated = purchase_service.create_po(
        db, job_id=job.JobID, category_id=quinc, supplier_name="Quincaillerie", amount_ht=Decimal("5000"), today=TODAY,
    )
    purchase_service.validate_po(db, po_id=validated.OrderID)
    purchase_service.create_po(
        db, job_id=job.JobID, category_id=quinc, supplier_name="Quincaillerie", amount_ht=Decimal("800"), today=TODAY,
    )

    job_service.add_time_entry(db, job.JobID, phase="FAB", hours=Decimal("120"), entry_date=TODAY)
    job_service.add_time_entry(db, job.JobID, phase="SER", hours=Decimal("10"), entry_date=TODAY)
    return job


def test_targets(db, running_job):
    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    t = snap.target
    assert t.revenue == Decimal("100000")
    assert t.purchases == Decimal("30000")
    assert snap.purchase_target_pct == Decimal("30")
    assert t.total_labor_hours == Decimal("180")
    assert t.labor_cost == Decimal("8100")
    assert t.overhead_workdays == 22
    assert t.overhead == Decimal("2200")
    assert t.margin == Decimal("59700")


def test_realized_and_variance(db, running_job):
    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    r = snap.realized
    assert r.revenue == Decimal("60000")
    assert r.purchases == Decimal("12000")
    assert r.labor_hours["FAB"] == Decimal("120")
    assert r.labor_hours["POSE"] == Decimal("0")
    assert r.labor_cost == Decimal("5850")
    assert r.overhead_workdays == 10
    assert r.overhead == Decimal("1000")
    assert r.margin == Decimal("41150")

    metrics = snap.metrics
    assert metrics["margin"].variance == Decimal("-18550")
    assert metrics["revenue"].variance == Decimal("-40000")
    assert metrics["labor_hours"].variance == Decimal("-50")
    assert snap.labor_hours_by_phase["SER"].variance == Decimal("-40")


def test_ratios_use_their_own_revenue(db, running_job):
    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    assert snap.target.ratios()["purchases"] == Decimal("30")
    assert snap.realized.ratios()["purchases"] == Decimal("20")


def test_category_purchases(db, running_job, categories):
    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    rows = {c.code: c for c in snap.categories}
    assert rows["BOIS"].allocated == Decimal("18000")
    assert rows["BOIS"].ordered == Decimal("12000")
    assert rows["BOIS"].received == Decimal("12000")
    assert rows["QUINCAILLERIE"].allocated == Decimal("12000")
    assert rows["QUINCAILLERIE"].ordered == Decimal("5000")
    assert rows["QUINCAILLERIE"].received == Decimal("0")


def test_serialized_snapshot_rounds_to_cents(db, running_job):
    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    data = SnapshotRead.build(snap).model_dump(mode="json")
    assert data["metrics"]["margin"] == {"target": 59700.0, "realized": 41150.0, "variance": -18550.0}
    assert data["ratios"]["realized"]["margin"] == pytest.approx(68.58)
    assert data["breakdown"]["target"]["loss"] == 0.0


def test_margin_and_loss_are_exclusive(db, job, categories):
    job.TargetRevenue = Decimal("0")
    db.commit()
    po = purchase_service.create_po(
        db, job_id=job.JobID, category_id=categories[0].CategoryID,
        supplier_name="Scierie", amount_ht=Decimal("300"), today=TODAY,
    )
    purchase_service.validate_po(db, po_id=po.OrderID)
    purchase_service.receive_po(db, po_id=po.OrderID, reception_date=TODAY)

    snap = build_financial_snapshot(db, job.JobID, today=TODAY)
    realized = snap.realized.breakdown()
    assert realized["margin"] == Decimal("0")
    assert realized["loss"] == Decimal("300")
    assert snap.realized.ratios()["purchases"] == Decimal("0")

    target = snap.target.breakdown()
    assert target["purchases"] == Decimal("0")  # no estimation
    for side in (realized, target):
        assert side["margin"] >= 0 and side["loss"] >= 0
        assert side["margin"] == 0 or side["loss"] == 0


def test_no_overhead_before_actual_start(db, job):
    job.PlannedStart = date(2025, 10, 1)
    job.ActualStart = date(2025, 10, 1)
    db.commit()
    overhead_service.create_item(db, label="Loyer", monthly_ht=Decimal("2000"), monthly_ttc=Decimal("2400"))

    snap = build_financial_snapshot(db, job.JobID, today=TODAY)
    assert snap.realized.overhead == Decimal("0")
    # PlannedEnd missing
    assert snap.target.overhead == Decimal("0")


def test_finished_job_stops_overhead_at_actual_end(db, job):
    job.ActualStart = date(2025, 9, 1)
    job.ActualEnd = date(2025, 9, 5)
    db.commit()
    overhead_service.create_item(db, label="Loyer", monthly_ht=Decimal("2000"), monthly_ttc=Decimal("2400"))

    snap = build_financial_snapshot(db, job.JobID, today=date(2025, 12, 31))
    assert snap.realized.overhead_workdays == 5
    assert snap.realized.overhead == Decimal("500")


def test_unknown_job(db):
    with pytest.raises(NotFoundError):
        build_financial_snapshot(db, 12345, today=TODAY)


# ---- overhead sweep and failures ----
def test_future_as_of_does_not_expire_running_items(db, job, monkeypatch):
    monkeypatch.setattr(clock, "today", lambda: TODAY)
    job.ActualStart = date(2025, 9, 1)
    db.commit()
    lease = overhead_service.create_item(
        db, label="Crédit-bail", monthly_ht=Decimal("1000"), monthly_ttc=Decimal("1200"), end_date=date(2027, 6, 30),
    )

    snap = build_financial_snapshot(db, job.JobID, today=date(2030, 1, 1))
    assert snap.computed_on == date(2030, 1, 1)
    assert snap.realized.overhead > 0

    db.expire_all()
    assert db.get(OverheadItem, lease.ItemID).IsActive is True


def test_past_as_of_still_drops_expired_items(db, job, monkeypatch):
    monkeypatch.setattr(clock, "today", lambda: TODAY)
    job.ActualStart = date(2025, 6, 2)
    db.commit()
    overhead_service.create_item(db, label="Loyer", monthly_ht=Decimal("2000"), monthly_ttc=Decimal("2400"))
    overhead_service.create_item(
        db, label="Ancien crédit", monthly_ht=Decimal("500"), monthly_ttc=Decimal("600"), end_date=date(2025, 8, 31),
    )

    # 2025-06-02..2025-06-06: one week, the expired item no longer counts
    snap = build_financial_snapshot(db, job.JobID, today=date(2025, 6, 6))
    assert snap.realized.overhead_workdays == 5
    assert snap.realized.overhead == Decimal("500")


def test_expired_but_active_item_never_contributes(db, running_job, monkeypatch):
    monkeypatch.setattr(clock, "today", lambda: TODAY)
    stale = overhead_service.create_item(
        db, label="Assurance 2024", monthly_ht=Decimal("900"), monthly_ttc=Decimal("1080"), end_date=date(2025, 8, 31),
    )
    assert stale.IsActive is True

    snap = build_financial_snapshot(db, running_job.JobID, today=TODAY)
    assert snap.target.overhead == Decimal("2200")
    assert snap.realized.overhead == Decimal("1000")
    db.expire_all()
    assert db.get(OverheadItem, stale.ItemID).IsActive is False


def test_failing_aggregate_fails_the_whole_snapshot(db, running_job, monkeypatch):
    def broken(_db):
        raise OperationalError("SELECT OverheadItem", {}, Exception("disk I/O error"))

    monkeypatch.setattr(overhead_service, "active_monthly_totals", broken)
    with pytest.raises(OperationalError):
        build_financial_snapshot(db, running_job.JobID, today=TODAY)
