"""
habitrat/features/analytics/daily_job.py

Daily analytics job.

For each user with at least one active habit:
- read one log window (ANALYTICS_LOOKBACK_DAYS ending as_of)
- per habit: consistency, streak fragility, momentum -> HabitAnalyticsDaily
- once per user: burnout from habit count and momentum -> UserBurnoutDaily

Rows are upserted by natural key and carry no wall-clock fields, so running
the job twice for the same as_of leaves identical rows behind.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional, Sequence

from habitrat.core.config import settings
from habitrat.core.errors import PersistenceError, UpstreamReadError
from habitrat.core.jobs import JobRunContext, persist_with_retry, run_units
from habitrat.core.logging import log_event
from habitrat.features.scoring.burnout import assess_burnout
from habitrat.features.scoring.consistency import calculate_consistency_score
from habitrat.features.scoring.log_view import LogView
from habitrat.features.scoring.momentum import calculate_momentum
from habitrat.features.scoring.streaks import calculate_streak_risk, current_streak
from habitrat.features.storage.base import AnalyticsStore
from habitrat.features.storage.store import get_store
from habitrat.models.analytics import HabitAnalyticsDaily, MomentumResult, UserBurnoutDaily, UserJobResult

JOB_NAME = "daily_analytics"

BURNOUT_SIGNAL_SCORE = 30  # consistency strictly below this flags the habit


def _read_user(store: AnalyticsStore, user_id: str, as_of: date):
    try:
        habits = store.get_active_habits(user_id)
        if not habits:
            return habits, None
        start = as_of - timedelta(days=settings.ANALYTICS_LOOKBACK_DAYS - 1)
        entries = store.get_entries(user_id, None, start, as_of)
    except Exception as e:
        raise UpstreamReadError(f"log read failed for user {user_id}: {e}") from e
    return habits, LogView(entries)


def analyze_user(user_id: str, as_of: date, store: AnalyticsStore) -> UserJobResult:
    habits, view = _read_user(store, user_id, as_of)
    if not habits:
        log_event("info", "user skipped", job=JOB_NAME, user_id=user_id, extra={"reason": "no_habits"})
        return UserJobResult(user_id=user_id, status="no_habits")

    momentums: List[MomentumResult] = []
    processed = written = failed = 0

    for habit in habits:
        try:
            consistency = calculate_consistency_score(habit.id, view, as_of, days=settings.CONSISTENCY_WINDOW_DAYS)
            streak = current_streak(habit.id, view, as_of, lookback_days=settings.ANALYTICS_LOOKBACK_DAYS)
            risk = calculate_streak_risk(habit.id, view, as_of, streak=streak)
            momentum = calculate_momentum(habit.id, view, as_of)
        except Exception as e:
            failed += 1
            log_event("error", "habit metrics failed", job=JOB_NAME, user_id=user_id, habit_id=habit.id, extra={"error": e})
            continue

        momentums.append(momentum)
        row = HabitAnalyticsDaily(
            habit_id=habit.id,
            user_id=user_id,
            analytics_date=as_of,
            consistency_score=consistency.score,
            streak_fragility=risk.risk_percentage,
            momentum=momentum.momentum,
            momentum_slope=round(momentum.slope, 4),
            burnout_signal=consistency.score < BURNOUT_SIGNAL_SCORE,
        )
        processed += 1
        try:
            persist_with_retry(
                JOB_NAME,
                lambda row=row: store.upsert_habit_analytics(row),
                what="habit_analytics_daily",
                user_id=user_id,
                habit_id=habit.id,
            )
            written += 1
        except PersistenceError as e:
            failed += 1
            log_event("error", "habit analytics not persisted", job=JOB_NAME, user_id=user_id, habit_id=habit.id, error_code=e.code)

    burnout = assess_burnout(len(habits), momentums)
    burnout_row = UserBurnoutDaily(
        user_id=user_id,
        analytics_date=as_of,
        risk_level=burnout.risk_level,
        signals=sorted(set(burnout.signals)),
        recommendation=burnout.recommendation,
    )
    try:
        persist_with_retry(JOB_NAME, lambda: store.upsert_user_burnout(burnout_row), what="user_burnout_daily", user_id=user_id)
        written += 1
    except PersistenceError as e:
        failed += 1
        log_event("error", "user burnout not persisted", job=JOB_NAME, user_id=user_id, error_code=e.code)

    log_event(
        "info",
        "user analyzed",
        job=JOB_NAME,
        user_id=user_id,
        extra={"habits": processed, "rows_written": written, "rows_failed": failed, "burnout": burnout.risk_level},
    )
    return UserJobResult(
        user_id=user_id,
        status="processed",
        habits_processed=processed,
        rows_written=written,
        rows_failed=failed,
    )


def run_daily_analytics(
    as_of: date,
    user_ids: Optional[Sequence[str]] = None,
    store: Optional[AnalyticsStore] = None,
) -> List[UserJobResult]:
    """
    Compute and persist the daily analytics for every active user.

    Args:
        as_of: Analytics date (the user-local day being closed out)
        user_ids: Restrict the run to these users; defaults to every user with an active habit
        store: Store implementation; defaults to get_store()

    Returns:
        One UserJobResult per user, in the order processed
    """
    store = store or get_store()

    with JobRunContext(JOB_NAME, as_of.isoformat(), store) as ctx:
        ids = list(user_ids) if user_ids is not None else store.list_active_user_ids()
        results = run_units(
            JOB_NAME,
            ids,
            lambda uid: analyze_user(uid, as_of, store),
            lambda uid, e: UserJobResult(user_id=uid, status="error", detail=str(e)),
        )
        ctx.finish(results)

    return results
