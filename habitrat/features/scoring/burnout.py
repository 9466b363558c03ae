"""
Burnout prediction: coarse heuristic over habit load and momentum.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from habitrat.features.scoring.log_view import LogView
from habitrat.features.scoring.momentum import calculate_momentum
from habitrat.models.analytics import BurnoutAssessment, MomentumResult
from habitrat.models.habit import Habit

OVERLOAD_HABIT_COUNT = 6  # strictly more than this
DECLINING_HABIT_COUNT = 2
LOW_RATE_14D = 0.40  # below this a habit counts as declining whatever its slope

OVERLOAD_SIGNAL = "Overload (6+ habits)"
DECLINING_SIGNAL = "Declining momentum"

RECOMMENDATIONS = {
    "High": "Pause 1-2 low-impact habits immediately.",
    "Medium": "Focus on consistency, not intensity.",
    "Low": "Maintain current pace.",
}


def _is_declining(m: MomentumResult) -> bool:
    return m.momentum == "Declining" or m.rate_14d < LOW_RATE_14D


def assess_burnout(active_habit_count: int, momentums: Iterable[MomentumResult]) -> BurnoutAssessment:
    """Burnout from already-computed momentum outputs (used by the daily job)."""
    signals = []
    if active_habit_count > OVERLOAD_HABIT_COUNT:
        signals.append(OVERLOAD_SIGNAL)

    declining = sum(1 for m in momentums if _is_declining(m))
    if declining >= DECLINING_HABIT_COUNT:
        signals.append(DECLINING_SIGNAL)

    if len(signals) >= 2:
        risk = "High"
    elif len(signals) == 1:
        risk = "Medium"
    else:
        risk = "Low"

    return BurnoutAssessment(risk_level=risk, signals=signals, recommendation=RECOMMENDATIONS[risk])


def predict_burnout(habits: Sequence[Habit], view: LogView, as_of: date) -> BurnoutAssessment:
    momentums = [calculate_momentum(h.id, view, as_of) for h in habits]
    return assess_burnout(len(habits), momentums)
