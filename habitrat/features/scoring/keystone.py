"""
Pairwise lift and keystone-habit detection.

lift(A -> B) = P(B completed | A completed) / P(B completed)

P(B) = B completions / days B was tracked in the window. A day with no entry
counts as a miss, so clients that only ever write completions still get a
real base rate. A habit is tracked from the window start, or from its
created_at day when it was created inside the window. The value is therefore
directional: lift(A -> B) and lift(B -> A) differ when the two habits have
been tracked for a different number of days.
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Set

from habitrat.features.scoring.log_view import LogView, get_log_entry, window_days
from habitrat.models.analytics import KeystoneHabit
from habitrat.models.habit import Habit

KEYSTONE_WINDOW_DAYS = 30
KEYSTONE_THRESHOLD = 1.2
MIN_SOURCE_COMPLETIONS = 5  # A needs strictly more than this


def round_half_up_to(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def tracked_days(habit: Habit, as_of: date, days: int) -> int:
    """Days of the `days`-long window ending `as_of` on which the habit existed."""
    if habit.created_at is None:
        return days
    start = as_of - timedelta(days=days - 1)
    created = habit.created_at.date()
    if created <= start:
        return days
    return max(0, (as_of - created).days + 1)


def lift_from_counts(a_completions: int, b_completions: int, b_tracked_days: int, both: int) -> Optional[float]:
    """None when either side has no completions (lift undefined)."""
    if a_completions <= 0 or b_completions <= 0 or b_tracked_days <= 0:
        return None
    p_b = b_completions / b_tracked_days
    p_b_given_a = both / a_completions
    return p_b_given_a / p_b


class _HabitWindow:
    """Completed days and tracked-day count for one habit inside a window."""

    def __init__(self, habit: Habit, view: LogView, as_of: date, days: int):
        self.completed: Set[date] = {
            day for day in window_days(as_of, days) if get_log_entry(view, day, habit.id).completed
        }
        self.tracked = tracked_days(habit, as_of, days)


def _lift(a: _HabitWindow, b: _HabitWindow) -> Optional[float]:
    return lift_from_counts(len(a.completed), len(b.completed), b.tracked, len(a.completed & b.completed))


def compute_lift(
    habit_a: Habit,
    habit_b: Habit,
    view: LogView,
    as_of: date,
    days: int = KEYSTONE_WINDOW_DAYS,
) -> Optional[float]:
    return _lift(_HabitWindow(habit_a, view, as_of, days), _HabitWindow(habit_b, view, as_of, days))


def detect_keystone_habits(
    habits: Sequence[Habit],
    view: LogView,
    as_of: date,
    days: int = KEYSTONE_WINDOW_DAYS,
) -> List[KeystoneHabit]:
    """
    Report habits that lift at least one other habit above the keystone threshold.

    Args:
        habits: Active habits of one user
        view: Log window covering `days` days ending `as_of`
        as_of: Last day of the window

    Returns:
        Keystone candidates sorted by impact_score (sum of lift - 1), highest first
    """
    if len(habits) < 2:
        return []

    windows: Dict[str, _HabitWindow] = {h.id: _HabitWindow(h, view, as_of, days) for h in habits}
    results: List[KeystoneHabit] = []

    for source in habits:
        a = windows[source.id]
        if len(a.completed) <= MIN_SOURCE_COMPLETIONS:
            continue

        total_impact = 0.0
        affected: List[str] = []
        for other in habits:
            if other.id == source.id:
                continue
            lift = _lift(a, windows[other.id])
            if lift is not None and lift > KEYSTONE_THRESHOLD:
                total_impact += lift - 1
                affected.append(other.name)

        if affected:
            results.append(
                KeystoneHabit(
                    habit_id=source.id,
                    habit=source.name,
                    impact_score=round_half_up_to(total_impact, 2),
                    affected_habits=affected,
                )
            )

    return sorted(results, key=lambda k: k.impact_score, reverse=True)
