# backend/app/scripts/seed.py
"""
Idempotent seed: admin user, purchase categories, default overhead catalog
and the order deletion secret (from ORDER_DELETE_SECRET when set).

    python -m app.scripts.seed
"""
import os
from contextlib import contextmanager

from sqlalchemy import select

from app.core.config import ORDER_DELETE_SECRET
from app.core.db import Base, SessionLocal, engine
from app.core.security import OVERRIDE_SECRET_KEY, hash_password, set_override_secret
from app.models import AppSetting, AppUser, PurchaseCategory
from app.services.overhead_service import seed_default_items

# ---------- small helpers ----------

@contextmanager
def session_scope():
    """One-off session, rolled back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def get_one(db, model, **by):
    return db.execute(select(model).filter_by(**by)).scalars().first()

def get_or_create(db, model, unique_by: dict, defaults: dict | None = None):
    """Look up by unique_by, create when missing. Caller commits."""
    inst = get_one(db, model, **unique_by)
    if inst:
        return inst, False
    inst = model(**{**unique_by, **(defaults or {})})
    db.add(inst)
    return inst, True

# ---------- seed data ----------

CATEGORIES = [
    {"Code": "MENUISERIE",    "Label": "Menuiserie"},
    {"Code": "BOIS",          "Label": "Bois et panneaux"},
    {"Code": "QUINCAILLERIE", "Label": "Quincaillerie"},
    {"Code": "VITRAGE",       "Label": "Vitrage"},
    {"Code": "FERRONNERIE",   "Label": "Ferronnerie"},
    {"Code": "AGENCEMENT",    "Label": "Agencement"},
    {"Code": "PEINTURE",      "Label": "Peinture et finition"},
    {"Code": "OUTILLAGE",     "Label": "Outillage"},
    {"Code": "SOUS_TRAITANCE", "Label": "Sous-traitance"},
    {"Code": "DIVERS",        "Label": "Divers"},
]

def run():
    Base.metadata.create_all(bind=engine)

    with session_scope() as db:
        print(">> Seeding: admin user / purchase categories")
        username = os.getenv("SEED_ADMIN_USERNAME", "admin")
        password = os.getenv("SEED_ADMIN_PASSWORD", "admin123")
        get_or_create(
            db, AppUser, {"Username": username},
            defaults={"FullName": "Administrateur", "Role": "admin", "HashedPassword": hash_password(password)},
        )
        for c in CATEGORIES:
            get_or_create(db, PurchaseCategory, {"Code": c["Code"]}, defaults=c)

        if ORDER_DELETE_SECRET and not db.get(AppSetting, OVERRIDE_SECRET_KEY):
            print(">> Storing order deletion secret from ORDER_DELETE_SECRET")
            set_override_secret(db, ORDER_DELETE_SECRET)

    with session_scope() as db:
        created = seed_default_items(db)
        print(f">> Seeding: overhead catalog ({created} new item(s))")

    print("Seed done.")

if __name__ == "__main__":
    run()
