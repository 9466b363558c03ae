"""
Momentum: short-window completion rate against the 30-day baseline.
"""

from __future__ import annotations

from datetime import date, timedelta

from habitrat.features.scoring.log_view import LogView, completion_rate
from habitrat.models.analytics import Confidence, MomentumResult

SLOPE_THRESHOLD = 0.10


def _confidence(habit_id: str, view: LogView, as_of: date) -> Confidence:
    earliest = view.earliest_day(habit_id)
    if earliest is None:
        return "Low"
    if earliest <= as_of - timedelta(days=29):
        return "High"
    if earliest <= as_of - timedelta(days=13):
        return "Medium"
    return "Low"


def calculate_momentum(habit_id: str, view: LogView, as_of: date) -> MomentumResult:
    """Rates over 7/14/30 days ending `as_of`; slope = rate_7d - rate_30d."""
    rate_7d = completion_rate(view, habit_id, as_of, 7)
    rate_14d = completion_rate(view, habit_id, as_of, 14)
    rate_30d = completion_rate(view, habit_id, as_of, 30)

    slope = rate_7d - rate_30d

    if slope > SLOPE_THRESHOLD:
        momentum = "Improving"
    elif slope < -SLOPE_THRESHOLD:
        momentum = "Declining"
    else:
        momentum = "Stable"

    return MomentumResult(
        momentum=momentum,
        slope=slope,
        rate_7d=rate_7d,
        rate_14d=rate_14d,
        rate_30d=rate_30d,
        confidence=_confidence(habit_id, view, as_of),
    )
