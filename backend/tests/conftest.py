# backend/tests/conftest.py
import os
import tempfile
from decimal import Decimal

# must be set before app.core.db is imported
_TMP = tempfile.mkdtemp(prefix="atelier-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["OVERHEAD_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["ORDER_DELETE_SECRET"] = ""

import pytest
from fastapi.testclient import TestClient

from app.core.db import Base, SessionLocal, engine
from app.core.security import hash_password
from app.models import AppUser, Job, PurchaseCategory

PASSWORD = "secret123"


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    from app.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def make_user(db):
    def _make(username: str, role: str) -> AppUser:
        user = AppUser(Username=username, Role=role, IsActive=True, HashedPassword=hash_password(PASSWORD))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture()
def auth_headers(client, make_user):
    """Creates the user and returns a bearer header for it."""
    def _headers(username: str, role: str) -> dict:
        make_user(username, role)
        r = client.post("/auth/login", data={"username": username, "password": PASSWORD})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _headers


@pytest.fixture()
def categories(db):
    rows = [
        PurchaseCategory(Code="BOIS", Label="Bois"),
        PurchaseCategory(Code="QUINCAILLERIE", Label="Quincaillerie"),
        PurchaseCategory(Code="VITRAGE", Label="Vitrage"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture()
def job(db):
    row = Job(
        Number="AFF-2025-001",
        Label="Cuisine Dupont",
        Client="Dupont",
        TargetRevenue=Decimal("100000"),
        TargetHoursFab=Decimal("100"),
        TargetHoursSer=Decimal("50"),
        TargetHoursPose=Decimal("30"),
        HourlyRate=Decimal("45"),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
