# backend/app/domain/clock.py
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    # naive UTC, matches the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return datetime.now(timezone.utc).date()
