"""
Health endpoints for operational monitoring. No secrets in responses.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from habitrat.core.database import get_engine
from habitrat.features.storage.sql import SqlStore
from habitrat.features.storage.store import get_store

logger = logging.getLogger("habitrat")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = [
    "habits",
    "habit_logs",
    "habit_analytics_daily",
    "user_burnout_daily",
    "habit_correlations",
    "notification_history",
]


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: store reachable and required tables present."""
    store = get_store()
    if not isinstance(store, SqlStore):
        return {"status": "ok", "store": "memory"}

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")

        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
        if missing:
            detail = f"missing tables: {', '.join(missing)}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

        return {"status": "ok", "store": "sql"}
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
