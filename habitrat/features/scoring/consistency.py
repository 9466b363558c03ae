"""
Consistency Score

Pure, deterministic composite of three sub-scores over a trailing window:
- Completion rate contributes 0..50
- Miss penalty contributes 0..30 (clustered misses cost more than scattered ones)
- Recovery speed contributes 0..20 (1 day back = 1.0, 2 days = 0.5, 3 days = 0.33)

Absent days count as misses here.
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from habitrat.features.scoring.log_view import LogView, get_log_entry
from habitrat.models.analytics import ConsistencyResult

DEFAULT_WINDOW_DAYS = 30
TREND_LOOKBACK_DAYS = 7

COMPLETION_WEIGHT = 50.0
MISS_BASE = 30.0
MISS_COST = 0.5
CLUSTER_COST = 1.5
RECOVERY_WEIGHT = 20.0
RECOVERY_HORIZON_DAYS = 3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def raw_consistency(habit_id: str, view: LogView, end: date, days: int = DEFAULT_WINDOW_DAYS) -> float:
    """Unclamped, unrounded score for the window of `days` ending on `end`."""
    if days <= 0:
        return 0.0

    # completed[i] is the state i days before `end`
    completed = [get_log_entry(view, end - timedelta(days=i), habit_id).completed for i in range(days)]

    completed_days = 0
    total_misses = 0
    cluster_misses = 0
    recovery_sum = 0.0

    for i, done in enumerate(completed):
        if done:
            completed_days += 1
            continue

        total_misses += 1
        if i < days - 1 and not completed[i + 1]:
            cluster_misses += 1

        for j in range(1, RECOVERY_HORIZON_DAYS + 1):
            if i - j < 0:
                break
            if completed[i - j]:
                recovery_sum += 1.0 / j
                break

    completion_score = (completed_days / days) * COMPLETION_WEIGHT

    miss_score = MISS_BASE - total_misses * MISS_COST - cluster_misses * CLUSTER_COST
    miss_score = max(0.0, miss_score)

    if total_misses > 0:
        recovery_score = (recovery_sum / total_misses) * RECOVERY_WEIGHT
    else:
        recovery_score = RECOVERY_WEIGHT

    return completion_score + miss_score + recovery_score


def calculate_consistency_score(
    habit_id: str,
    view: LogView,
    as_of: date,
    days: int = DEFAULT_WINDOW_DAYS,
) -> ConsistencyResult:
    """
    Score the window ending `as_of` and compare it to the same-length window a week earlier.

    Args:
        habit_id: Habit to score
        view: Log window (must reach back `days + 7` days for a meaningful trend)
        as_of: Last day of the window (inclusive)
        days: Window length

    Returns:
        ConsistencyResult with score 0..100, trend and change_7d
    """
    current = raw_consistency(habit_id, view, as_of, days)
    last_week = raw_consistency(habit_id, view, as_of - timedelta(days=TREND_LOOKBACK_DAYS), days)
    diff = current - last_week

    if diff > 0:
        trend = "up"
    elif diff < 0:
        trend = "down"
    else:
        trend = "neutral"

    return ConsistencyResult(
        score=min(100, max(0, round_half_up(current))),
        trend=trend,
        change_7d=round_half_up(diff),
    )
