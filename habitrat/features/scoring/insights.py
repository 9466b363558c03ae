"""
Short coaching messages shown above the analytics screen.

Rules, in output order:
- streak motivation once the activity streak passes 3 or 7 days
- habits completed fewer than 3 times in the last 7 days (first two named)
- weekend drop-off over the last four weeks
- one general tip, chosen by the as_of day so a given day always gets the same one
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional, Sequence

from habitrat.features.scoring.log_view import LogView, get_log_entry, window_days
from habitrat.models.habit import Habit

ACTIVITY_LOOKBACK_DAYS = 365
HOT_STREAK_DAYS = 7  # strictly more than
MOMENTUM_STREAK_DAYS = 3  # strictly more than

STRUGGLING_WINDOW_DAYS = 7
STRUGGLING_MIN_COMPLETIONS = 3
STRUGGLING_NAMES_SHOWN = 2

WEEKEND_WINDOW_DAYS = 28
WEEKEND_MISS_SHARE = 0.5  # strictly more than
WEEKEND_DAYS = (5, 6)  # Saturday, Sunday

WEEKEND_INSIGHT = "📅 You tend to miss habits on weekends. Try setting specific reminders for Saturday and Sunday."
GENERAL_TIPS = (
    "💡 Tip: Stack your new habit with an existing one (e.g., 'After I brush my teeth, I will read').",
    "💡 Tip: Start small. Regularity beats intensity.",
    "💡 Tip: Prepare your environment the night before to reduce friction.",
)


def _done_count(habits: Sequence[Habit], view: LogView, day: date) -> int:
    return sum(1 for h in habits if get_log_entry(view, day, h.id).completed)


def activity_streak(
    habits: Sequence[Habit],
    view: LogView,
    as_of: date,
    lookback_days: int = ACTIVITY_LOOKBACK_DAYS,
) -> int:
    """Consecutive days with at least one completion, ending `as_of` (or the day before while `as_of` is open)."""
    end = as_of if _done_count(habits, view, as_of) else as_of - timedelta(days=1)
    streak = 0
    for day in window_days(end, lookback_days):
        if not _done_count(habits, view, day):
            break
        streak += 1
    return streak


def _streak_insight(streak: int) -> Optional[str]:
    if streak > HOT_STREAK_DAYS:
        return f"🔥 You're on fire! {streak} days streak. Keep it up!"
    if streak > MOMENTUM_STREAK_DAYS:
        return f"🚀 Great momentum! You've hit {streak} days in a row."
    return None


def struggling_habits(habits: Sequence[Habit], view: LogView, as_of: date) -> List[Habit]:
    struggling = []
    for habit in habits:
        done = sum(1 for day in window_days(as_of, STRUGGLING_WINDOW_DAYS) if get_log_entry(view, day, habit.id).completed)
        if done < STRUGGLING_MIN_COMPLETIONS:
            struggling.append(habit)
    return struggling


def weekend_miss_share(habits: Sequence[Habit], view: LogView, as_of: date) -> Optional[float]:
    """Share of weekend days in the last four weeks where under half the habits were done."""
    opportunities = 0
    misses = 0
    for day in window_days(as_of, WEEKEND_WINDOW_DAYS):
        if day.weekday() not in WEEKEND_DAYS:
            continue
        opportunities += 1
        if _done_count(habits, view, day) < len(habits) / 2:
            misses += 1
    if not opportunities:
        return None
    return misses / opportunities


def general_tip(as_of: date) -> str:
    return GENERAL_TIPS[as_of.toordinal() % len(GENERAL_TIPS)]


def generate_insights(
    habits: Sequence[Habit],
    view: LogView,
    as_of: date,
    streak: Optional[int] = None,
) -> List[str]:
    """
    Coaching messages for one user's active habits.

    Args:
        habits: Active habits, in display order (struggling names follow it)
        view: Log window covering at least the last four weeks
        as_of: Day the messages are for
        streak: Activity streak to report; computed from `view` when omitted

    Returns:
        Messages in rule order; always ends with one general tip
    """
    if streak is None:
        streak = activity_streak(habits, view, as_of)

    insights: List[str] = []
    streak_message = _streak_insight(streak)
    if streak_message:
        insights.append(streak_message)

    struggling = struggling_habits(habits, view, as_of)
    if struggling:
        names = ", ".join(h.name for h in struggling[:STRUGGLING_NAMES_SHOWN])
        insights.append(f"💪 Focus on {names}. Consistency is key to building lasting habits.")

    share = weekend_miss_share(habits, view, as_of)
    if share is not None and share > WEEKEND_MISS_SHARE:
        insights.append(WEEKEND_INSIGHT)

    insights.append(general_tip(as_of))
    return insights
