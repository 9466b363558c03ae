"""
Streak length and streak-fragility risk.

Risk accumulates weighted factors; the heaviest triggered factor is reported
as the primary one so the client can explain the number.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional, Tuple

from habitrat.features.scoring.consistency import calculate_consistency_score
from habitrat.features.scoring.log_view import LogView, get_log_entry, window_days
from habitrat.models.analytics import RiskLevel, StreakRisk

DEFAULT_STREAK_LOOKBACK_DAYS = 365

UNSTABLE_HISTORY_WEIGHT = 30
IRREGULAR_TIME_WEIGHT = 25
DECLINING_CONSISTENCY_WEIGHT = 20

SHORT_STREAK_DAYS = 7
RECENT_HISTORY_DAYS = 14
RECENT_MISS_LIMIT = 5
TIMING_SAMPLE_SIZE = 7
TIMING_SCAN_DAYS = 30
TIMING_MIN_SAMPLES = 3
TIMING_VARIANCE_LIMIT = 4.0  # hours^2

NO_STREAK = "no active streak"
STABLE = "stable habit"


def current_streak(
    habit_id: str,
    view: LogView,
    as_of: date,
    lookback_days: int = DEFAULT_STREAK_LOOKBACK_DAYS,
) -> int:
    """Consecutive completed days ending `as_of`, or ending the day before if `as_of` is still open."""
    start = as_of if get_log_entry(view, as_of, habit_id).completed else as_of - timedelta(days=1)
    return streak_ending(habit_id, view, start, lookback_days)


def streak_ending(habit_id: str, view: LogView, end: date, lookback_days: int = DEFAULT_STREAK_LOOKBACK_DAYS) -> int:
    streak = 0
    for day in window_days(end, lookback_days):
        if not get_log_entry(view, day, habit_id).completed:
            break
        streak += 1
    return streak


def risk_level_for(risk: int) -> RiskLevel:
    if risk > 60:
        return "High"
    if risk > 30:
        return "Medium"
    return "Low"


def _completion_hours(habit_id: str, view: LogView, as_of: date) -> List[int]:
    hours: List[int] = []
    for day in window_days(as_of, TIMING_SCAN_DAYS):
        if len(hours) >= TIMING_SAMPLE_SIZE:
            break
        entry = get_log_entry(view, day, habit_id)
        if entry.completed and entry.completion_time is not None:
            hours.append(entry.completion_time.hour)
    return hours


def _variance(values: List[int]) -> float:
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def calculate_streak_risk(
    habit_id: str,
    view: LogView,
    as_of: date,
    streak: Optional[int] = None,
) -> StreakRisk:
    """
    Estimate how likely the active streak is to break.

    Args:
        habit_id: Habit to assess
        view: Log window ending at least at `as_of`
        as_of: Reference day
        streak: Current streak if already known; computed from the view otherwise

    Returns:
        StreakRisk; exactly (0, Low, "no active streak") when the streak is 0
    """
    if streak is None:
        streak = current_streak(habit_id, view, as_of)
    if streak == 0:
        return StreakRisk(risk_percentage=0, risk_level="Low", primary_factor=NO_STREAK)

    factors: List[Tuple[str, int]] = []

    if streak < SHORT_STREAK_DAYS:
        recent_misses = sum(
            1 for day in window_days(as_of, RECENT_HISTORY_DAYS)
            if not get_log_entry(view, day, habit_id).completed
        )
        if recent_misses > RECENT_MISS_LIMIT:
            factors.append(("unstable recent history", UNSTABLE_HISTORY_WEIGHT))

    hours = _completion_hours(habit_id, view, as_of)
    if len(hours) >= TIMING_MIN_SAMPLES and _variance(hours) > TIMING_VARIANCE_LIMIT:
        factors.append(("irregular completion time", IRREGULAR_TIME_WEIGHT))

    if calculate_consistency_score(habit_id, view, as_of).trend == "down":
        factors.append(("declining consistency", DECLINING_CONSISTENCY_WEIGHT))

    risk = min(100, max(0, sum(weight for _, weight in factors)))
    factors.sort(key=lambda f: f[1], reverse=True)
    primary = factors[0][0] if factors else STABLE

    return StreakRisk(
        risk_percentage=risk,
        risk_level=risk_level_for(risk),
        primary_factor=primary,
    )
