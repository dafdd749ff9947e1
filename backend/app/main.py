# backend/app/main.py
import asyncio
import json
import logging
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core import config
from app.core.api import ok, fail, UTF8JSONResponse
from app.core.db import Base, SessionLocal, engine, get_db
from app.core.errors import DomainError
from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.services.overhead_service import deactivate_expired_items

# --- Router importları ---
from app.routers.auth import router as auth_router
from app.routers.jobs import router as jobs_router
from app.routers.purchase import router as purchase_router
from app.routers.estimations import router as estimations_router
from app.routers.overhead import router as overhead_router
from app.routers.finance import router as finance_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

app = FastAPI(title="Atelier finance", default_response_class=UTF8JSONResponse)


# -----------------------------
# Global error envelope
# -----------------------------
@app.exception_handler(DomainError)
async def domain_error_to_envelope(request: Request, exc: DomainError):
    return fail(str(exc.detail), status_code=exc.status_code, meta=exc.context, headers=exc.headers)

@app.exception_handler(StarletteHTTPException)
async def http_exception_to_envelope(request: Request, exc: StarletteHTTPException):
    return fail(
        str(exc.detail) if exc.detail else exc.__class__.__name__,
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_to_envelope(request: Request, exc: RequestValidationError):
    return fail("Validation error", status_code=422, meta={"errors": exc.errors()})

@app.exception_handler(SQLAlchemyError)
async def db_error_to_envelope(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return fail("Database error", status_code=500)


# -----------------------------
# CORS (.env)
# -----------------------------
def _parse_origins(env_val: Optional[str]):
    if not env_val or env_val.strip() == "*":
        return ["*"]
    try:
        parsed = json.loads(env_val)
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    except ValueError:
        pass
    return [s.strip() for s in env_val.split(",") if s.strip()]

ALLOWED_ORIGINS = _parse_origins(config.CORS_ALLOW_ORIGINS)
logger.info("CORS allow_origins = %s", ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------
# Startup: tables + overhead expiration sweep
# -----------------------------
def _sweep_once() -> int:
    with SessionLocal() as db:
        return deactivate_expired_items(db)

async def _periodic_sweep(interval: int):
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(_sweep_once)
        except Exception:
            # keep the loop alive, the next tick retries
            logger.exception("periodic overhead sweep failed")

@app.on_event("startup")
async def _startup():
    await run_in_threadpool(Base.metadata.create_all, engine)
    try:
        await run_in_threadpool(_sweep_once)
    except SQLAlchemyError:
        logger.exception("startup overhead sweep failed")
    if config.OVERHEAD_SWEEP_INTERVAL_SECONDS > 0:
        app.state.sweep_task = asyncio.create_task(_periodic_sweep(config.OVERHEAD_SWEEP_INTERVAL_SECONDS))

@app.on_event("shutdown")
async def _shutdown():
    task = getattr(app.state, "sweep_task", None)
    if task:
        task.cancel()


# ---- health ----
@app.get("/health")
def health():
    return ok({"service": "atelier-finance"})

@app.get("/db-ping")
def db_ping(db: Session = Depends(get_db)):
    val = db.execute(text("SELECT 1")).scalar()
    return ok({"db": "ok", "select1": val})


# =========================
# Routers
# =========================
app.include_router(auth_router)
app.include_router(jobs_router)
app.include_router(estimations_router)
app.include_router(purchase_router)
app.include_router(overhead_router)
app.include_router(finance_router)
