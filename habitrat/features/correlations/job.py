"""
habitrat/features/correlations/job.py

Habit correlation job: directed lift between every ordered pair of a user's
active habits over CORRELATION_WINDOW_DAYS, keeping pairs above
CORRELATION_THRESHOLD. Each run replaces the user's rows.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Set

from habitrat.core.config import settings
from habitrat.core.errors import InsufficientDataError, PersistenceError, UpstreamReadError
from habitrat.core.jobs import JobRunContext, persist_with_retry, run_units
from habitrat.core.logging import log_event
from habitrat.features.scoring.keystone import lift_from_counts, round_half_up_to, tracked_days
from habitrat.features.storage.base import AnalyticsStore
from habitrat.features.storage.store import get_store
from habitrat.models.analytics import HabitCorrelation, UserJobResult
from habitrat.models.habit import Habit, LogEntry

JOB_NAME = "correlations"

MIN_ACTIVE_HABITS = 2
SCORE_DECIMALS = 3


def _completed(entry: LogEntry) -> bool:
    return entry.value if isinstance(entry.value, bool) else entry.value.completed


def compute_correlations(
    user_id: str,
    habits: Sequence[Habit],
    entries: Sequence[LogEntry],
    as_of: date,
    threshold: float,
    days: Optional[int] = None,
) -> List[HabitCorrelation]:
    """
    Directed lift rows for one user over the `days`-long window ending `as_of`.

    A habit with no entry on a tracked day counts as missed that day.

    Raises:
        InsufficientDataError: fewer than CORRELATION_MIN_LOG_ROWS entries in the window
    """
    days = days or settings.CORRELATION_WINDOW_DAYS
    start = as_of - timedelta(days=days - 1)
    habit_ids = sorted(h.id for h in habits)
    tracked = {h.id: tracked_days(h, as_of, days) for h in habits}
    rows = [e for e in entries if e.habit_id in tracked and start <= e.log_date <= as_of]
    if len(rows) < settings.CORRELATION_MIN_LOG_ROWS:
        raise InsufficientDataError(f"{len(rows)} log rows in window")

    completed_by_day: Dict[date, Set[str]] = defaultdict(set)
    completions: Dict[str, int] = defaultdict(int)
    for entry in rows:
        if _completed(entry):
            completions[entry.habit_id] += 1
            completed_by_day[entry.log_date].add(entry.habit_id)

    results: List[HabitCorrelation] = []
    for a in habit_ids:
        for b in habit_ids:
            if a == b:
                continue
            both = sum(1 for done in completed_by_day.values() if a in done and b in done)
            lift = lift_from_counts(completions[a], completions[b], tracked[b], both)
            if lift is not None and lift > threshold:
                results.append(
                    HabitCorrelation(
                        user_id=user_id,
                        habit_a=a,
                        habit_b=b,
                        correlation_score=round_half_up_to(lift, SCORE_DECIMALS),
                    )
                )
    return results


def _replace(store: AnalyticsStore, user_id: str, rows: List[HabitCorrelation]) -> int:
    return persist_with_retry(
        JOB_NAME,
        lambda: store.replace_habit_correlations(user_id, rows),
        what="habit_correlations",
        user_id=user_id,
    )


def correlate_user(user_id: str, as_of: date, store: AnalyticsStore) -> UserJobResult:
    try:
        habits = store.get_active_habits(user_id)
        entries = []
        if len(habits) >= MIN_ACTIVE_HABITS:
            start = as_of - timedelta(days=settings.CORRELATION_WINDOW_DAYS - 1)
            entries = store.get_entries(user_id, None, start, as_of)
    except Exception as e:
        raise UpstreamReadError(f"log read failed for user {user_id}: {e}") from e

    status = "processed"
    detail = None
    if len(habits) < MIN_ACTIVE_HABITS:
        status, rows = "insufficient_habits", []
    else:
        try:
            rows = compute_correlations(user_id, habits, entries, as_of, settings.CORRELATION_THRESHOLD)
        except InsufficientDataError as e:
            status, rows, detail = "insufficient_data", [], e.message

    # Skipped users still get their stale pairs cleared
    try:
        written = _replace(store, user_id, rows)
    except PersistenceError as e:
        log_event("error", "correlations not persisted", job=JOB_NAME, user_id=user_id, error_code=e.code)
        return UserJobResult(user_id=user_id, status=status, rows_failed=len(rows) or 1, detail=e.message)

    log_event(
        "info",
        "user correlated",
        job=JOB_NAME,
        user_id=user_id,
        extra={"outcome": status, "habits": len(habits), "pairs": written},
    )
    return UserJobResult(
        user_id=user_id,
        status=status,
        habits_processed=len(habits) if status == "processed" else 0,
        rows_written=written,
        detail=detail,
    )


def run_correlations(
    as_of: date,
    user_ids: Optional[Sequence[str]] = None,
    store: Optional[AnalyticsStore] = None,
) -> List[UserJobResult]:
    """Recompute directed habit correlations for every active user (or the given ids)."""
    store = store or get_store()

    with JobRunContext(JOB_NAME, as_of.isoformat(), store) as ctx:
        ids = list(user_ids) if user_ids is not None else store.list_active_user_ids()
        results = run_units(
            JOB_NAME,
            ids,
            lambda uid: correlate_user(uid, as_of, store),
            lambda uid, e: UserJobResult(user_id=uid, status="error", detail=str(e)),
        )
        ctx.finish(results)

    return results
