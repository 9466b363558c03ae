"""
Time-of-day affinity and failure-reason distribution.

Both only look at entries that carry metadata: completions need a
completion_time to be bucketed, misses need a failure_reason to be tallied.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Dict, List, Tuple

from habitrat.features.scoring.consistency import round_half_up
from habitrat.features.scoring.log_view import LogView, get_log_entry, window_days
from habitrat.models.analytics import FailureReasonShare, FailureReasonSummary, HeatmapCell

HEATMAP_WINDOW_DAYS = 90
FAILURE_WINDOW_DAYS = 30
TOP_REASONS = 3


def _sunday_first(day: date) -> int:
    return (day.weekday() + 1) % 7


def generate_time_heatmap(
    habit_id: str,
    view: LogView,
    as_of: date,
    days: int = HEATMAP_WINDOW_DAYS,
) -> List[HeatmapCell]:
    """Completion counts per (day_of_week, hour) with max-normalized intensity."""
    buckets: Dict[Tuple[int, int], int] = {}
    for day in window_days(as_of, days):
        entry = get_log_entry(view, day, habit_id)
        if entry.completed and entry.completion_time is not None:
            key = (_sunday_first(day), entry.completion_time.hour)
            buckets[key] = buckets.get(key, 0) + 1

    if not buckets:
        return []

    max_count = max(buckets.values())
    return [
        HeatmapCell(day=d, hour=h, count=count, intensity=count / max_count)
        for (d, h), count in sorted(buckets.items())
    ]


def analyze_failure_reasons(
    habit_id: str,
    view: LogView,
    as_of: date,
    days: int = FAILURE_WINDOW_DAYS,
) -> FailureReasonSummary:
    reasons: Counter = Counter()
    for day in window_days(as_of, days):
        entry = get_log_entry(view, day, habit_id)
        if not entry.completed and entry.failure_reason:
            reasons[entry.failure_reason] += 1

    total = sum(reasons.values())
    ranked = sorted(reasons.items(), key=lambda item: (-item[1], item[0]))[:TOP_REASONS]
    top = [
        FailureReasonShare(reason=reason, percentage=round_half_up(count / total * 100))
        for reason, count in ranked
    ]
    return FailureReasonSummary(top_reasons=top, total_failures=total)
