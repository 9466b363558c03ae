"""
Shared plumbing for the batch jobs.

- run id binding so every log line of a run correlates
- bounded retry around store writes
- per-user fan-out, sequential or on a thread pool
- job run auditing and unit metrics
"""
from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar
from uuid import uuid4

from habitrat.core.config import settings
from habitrat.core.errors import PersistenceError
from habitrat.core.logging import log_event, run_id_ctx_var
from habitrat.core.metrics import job_last_run_units, job_units_total, persist_failures_total
from habitrat.models.analytics import JobRun

R = TypeVar("R")


def new_run_id(job_name: str) -> str:
    return f"{job_name}-{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def persist_with_retry(
    job: str,
    write: Callable[[], R],
    *,
    what: str,
    user_id: Optional[str] = None,
    habit_id: Optional[str] = None,
    max_attempts: Optional[int] = None,
) -> R:
    """
    Run a store write, retrying up to PERSIST_MAX_ATTEMPTS in total.

    Raises:
        PersistenceError: when every attempt failed
    """
    attempts = max(1, max_attempts or settings.PERSIST_MAX_ATTEMPTS)
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            return write()
        except Exception as e:
            last_exc = e
            log_event(
                "warning",
                f"{what} write failed",
                job=job,
                user_id=user_id,
                habit_id=habit_id,
                error_code=PersistenceError.code,
                extra={"attempt": attempt, "max_attempts": attempts, "error": e},
            )

    persist_failures_total.inc({"job": job})
    raise PersistenceError(f"{what} write failed after {attempts} attempts: {last_exc}")


def run_units(
    job: str,
    user_ids: Sequence[str],
    unit: Callable[[str], R],
    on_error: Callable[[str, Exception], R],
    max_workers: Optional[int] = None,
) -> List[R]:
    """
    Apply `unit` to every user. A raising unit is turned into `on_error`'s
    result so one user never aborts the rest. Results keep input order.
    """

    def guarded(user_id: str) -> R:
        try:
            return unit(user_id)
        except Exception as e:
            log_event(
                "error",
                "unit failed",
                job=job,
                user_id=user_id,
                error_code=getattr(e, "code", "internal_error"),
                extra={"error": e},
            )
            return on_error(user_id, e)

    workers = max_workers or settings.JOB_MAX_WORKERS
    if workers <= 1 or len(user_ids) <= 1:
        return [guarded(uid) for uid in user_ids]

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=job) as pool:
        # Copy the context per task so the run id reaches worker threads
        futures = [pool.submit(contextvars.copy_context().run, guarded, uid) for uid in user_ids]
        return [f.result() for f in futures]


def summarize(results: Iterable) -> dict:
    stats: dict = {"units": 0}
    for r in results:
        stats["units"] += 1
        stats[r.status] = stats.get(r.status, 0) + 1
        for field in ("rows_written", "rows_failed"):
            if hasattr(r, field):
                stats[field] = stats.get(field, 0) + getattr(r, field)
    return stats


def run_status(stats: dict) -> str:
    errors = stats.get("error", 0) + stats.get("dispatch_failed", 0)
    if stats["units"] and errors == stats["units"]:
        return "failed"
    if errors or stats.get("rows_failed", 0):
        return "partial"
    return "success"


class JobRunContext:
    """
    Binds a run id for the duration of a job and records the JobRun on exit.

    Usage:
        with JobRunContext("daily_analytics", as_of.isoformat(), store) as ctx:
            results = ...
            ctx.finish(results)
    """

    def __init__(self, job_name: str, as_of: str, store):
        self.job_name = job_name
        self.as_of = as_of
        self.store = store
        self.run_id = new_run_id(job_name)
        self.started_at: Optional[datetime] = None
        self.run: Optional[JobRun] = None
        self._token = None

    def __enter__(self) -> "JobRunContext":
        self._token = run_id_ctx_var.set(self.run_id)
        self.started_at = utcnow()
        log_event("info", "job started", job=self.job_name, extra={"as_of": self.as_of})
        return self

    def finish(self, results: Sequence) -> JobRun:
        for r in results:
            job_units_total.inc({"job": self.job_name, "status": r.status})
        job_last_run_units.set(len(results), {"job": self.job_name})

        stats = summarize(results)
        self.run = JobRun(
            job_name=self.job_name,
            run_id=self.run_id,
            as_of=self.as_of,
            started_at=self.started_at,
            finished_at=utcnow(),
            status=run_status(stats),
            stats=stats,
        )
        try:
            persist_with_retry(self.job_name, lambda: self.store.record_job_run(self.run), what="job_run")
        except PersistenceError as e:
            # Audit row is best effort; the analytics rows are already written
            log_event("error", "job run not recorded", job=self.job_name, error_code=e.code, extra={"error": e.message})

        log_event(
            "info",
            "job finished",
            job=self.job_name,
            extra={"status": self.run.status, "stats": stats},
        )
        return self.run

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            log_event("error", "job aborted", job=self.job_name, error_code=getattr(exc, "code", "internal_error"), extra={"error": exc})
        run_id_ctx_var.reset(self._token)
        return False
