from decimal import Decimal

import pytest

from app.core.errors import NotFoundError, ValidationError
from app.domain import allocation
from app.models import EstimationCategory
from app.services import estimation_service as svc


@pytest.fixture()
def small_job(db, job):
    job.TargetRevenue = Decimal("83333")
    db.commit()
    return job


def _line(est, category_id):
    return next(c for c in est.categories if c.CategoryID == category_id)


# ---- pure allocation ----
def test_target_amount_rounds_half_up():
    assert allocation.target_amount(Decimal("83333"), Decimal("30")) == Decimal("25000")
    assert allocation.target_amount(Decimal("1"), Decimal("50")) == Decimal("1")


def test_share_of_zero_target_is_zero():
    assert allocation.share_for_amount(Decimal("0"), Decimal("500")) == Decimal("0")


# ---- save / read ----
def test_save_computes_target_and_lines(db, small_job, categories):
    bois, quinc, vitr = (c.CategoryID for c in categories)
    est = svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
        {"CategoryID": bois, "Mode": "percent", "Percent": 25},
        {"CategoryID": quinc, "Mode": "amount", "FixedAmount": 7000},
        {"CategoryID": vitr, "Mode": "percent", "Percent": 40},
    ])
    assert est.TargetAmount == Decimal("25000")

    summary = svc.summarize(est)
    figures = {f.category_id: f for f in summary.lines}
    assert figures[bois].amount == Decimal("6250")
    assert figures[quinc].share == Decimal("28")
    assert figures[vitr].amount == Decimal("10000")
    assert summary.total_share == Decimal("93")
    assert summary.delta_share == Decimal("-7")
    assert summary.allocated_amount == Decimal("23250")
    assert summary.unallocated_amount == Decimal("1750")


def test_shares_may_exceed_hundred(db, small_job, categories):
    est = svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
        {"CategoryID": categories[0].CategoryID, "Percent": 60},
        {"CategoryID": categories[1].CategoryID, "Percent": 50},
    ])
    summary = svc.summarize(est)
    assert summary.total_share == Decimal("110")
    assert summary.delta_share == Decimal("10")
    assert summary.unallocated_amount == Decimal("-2500")


def test_save_replaces_previous_estimation(db, small_job, categories):
    svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
        {"CategoryID": categories[0].CategoryID, "Percent": 60},
        {"CategoryID": categories[1].CategoryID, "Percent": 40},
    ])
    est = svc.save_estimation(db, small_job.JobID, target_pct=20, categories=[
        {"CategoryID": categories[1].CategoryID, "Percent": 100},
    ])
    assert est.TargetAmount == Decimal("16667")
    assert [c.CategoryID for c in est.categories] == [categories[1].CategoryID]
    assert db.query(EstimationCategory).count() == 1


@pytest.mark.parametrize("pct", [-1, Decimal("100.01"), "abc"])
def test_target_pct_out_of_range(db, small_job, pct):
    with pytest.raises(ValidationError):
        svc.save_estimation(db, small_job.JobID, target_pct=pct)


def test_bad_categories_rejected(db, small_job, categories):
    cid = categories[0].CategoryID
    with pytest.raises(ValidationError):
        svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[{"CategoryID": 999, "Percent": 10}])
    with pytest.raises(ValidationError):
        svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
            {"CategoryID": cid, "Percent": 10}, {"CategoryID": cid, "Percent": 20},
        ])
    with pytest.raises(ValidationError):
        svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[{"CategoryID": cid, "Percent": -5}])
    with pytest.raises(ValidationError):
        svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
            {"CategoryID": cid, "Mode": "amount", "FixedAmount": -1},
        ])


def test_missing_job_or_estimation(db, small_job):
    with pytest.raises(NotFoundError):
        svc.save_estimation(db, 999, target_pct=30)
    with pytest.raises(NotFoundError):
        svc.get_estimation(db, small_job.JobID)


# ---- single-category edits ----
def test_update_category_leaves_others_alone(db, small_job, categories):
    a, b = categories[0].CategoryID, categories[1].CategoryID
    svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
        {"CategoryID": a, "Percent": 60},
        {"CategoryID": b, "Percent": 40},
    ])
    est = svc.update_category(db, small_job.JobID, a, percent=70)
    assert _line(est, a).Percent == Decimal("70")
    assert _line(est, b).Percent == Decimal("40")
    assert svc.summarize(est).delta_share == Decimal("10")


def test_fixed_amount_only_in_amount_mode(db, small_job, categories):
    a = categories[0].CategoryID
    svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[{"CategoryID": a, "Percent": 10}])
    with pytest.raises(ValidationError):
        svc.update_category(db, small_job.JobID, a, fixed_amount=100)


def test_mode_switch_freezes_and_restores(db, small_job, categories):
    a, b = categories[0].CategoryID, categories[1].CategoryID
    svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[
        {"CategoryID": a, "Percent": 25},
        {"CategoryID": b, "Percent": 10},
    ])

    est = svc.switch_category_mode(db, small_job.JobID, a, "amount")
    line = _line(est, a)
    assert line.Mode == "amount"
    assert line.FixedAmount == Decimal("6250")

    est = svc.update_category(db, small_job.JobID, a, fixed_amount=7000)
    fig = next(f for f in svc.summarize(est).lines if f.category_id == a)
    assert fig.share == Decimal("28")
    assert _line(est, b).Percent == Decimal("10")

    est = svc.switch_category_mode(db, small_job.JobID, a, "percent")
    line = _line(est, a)
    assert line.Mode == "percent"
    assert line.FixedAmount is None
    assert line.Percent == Decimal("25")


def test_delete_estimation(db, small_job, categories):
    svc.save_estimation(db, small_job.JobID, target_pct=30, categories=[{"CategoryID": categories[0].CategoryID, "Percent": 10}])
    svc.delete_estimation(db, small_job.JobID)
    assert svc.find_estimation(db, small_job.JobID) is None
    assert db.query(EstimationCategory).count() == 0
