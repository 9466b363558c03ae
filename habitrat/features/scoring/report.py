"""
Full metric report for one user, used by the preview endpoint so the client
can show the same numbers the batch jobs persist.
"""

from __future__ import annotations

from datetime import date
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict

from habitrat.features.scoring.burnout import assess_burnout
from habitrat.features.scoring.consistency import calculate_consistency_score
from habitrat.features.scoring.insights import generate_insights
from habitrat.features.scoring.keystone import detect_keystone_habits
from habitrat.features.scoring.log_view import LogView
from habitrat.features.scoring.momentum import calculate_momentum
from habitrat.features.scoring.streaks import calculate_streak_risk, current_streak
from habitrat.features.scoring.timing import analyze_failure_reasons, generate_time_heatmap
from habitrat.models.analytics import (
    BurnoutAssessment,
    ConsistencyResult,
    FailureReasonSummary,
    HeatmapCell,
    KeystoneHabit,
    MomentumResult,
    StreakRisk,
)
from habitrat.models.habit import Habit


class HabitReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    habit_id: str
    streak: int
    consistency: ConsistencyResult
    streak_risk: StreakRisk
    momentum: MomentumResult
    heatmap: List[HeatmapCell]
    failure_reasons: FailureReasonSummary


class UserReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    as_of: date
    habits: List[HabitReport]
    keystones: List[KeystoneHabit]
    burnout: BurnoutAssessment
    insights: List[str]


def build_habit_report(habit_id: str, view: LogView, as_of: date) -> HabitReport:
    streak = current_streak(habit_id, view, as_of)
    return HabitReport(
        habit_id=habit_id,
        streak=streak,
        consistency=calculate_consistency_score(habit_id, view, as_of),
        streak_risk=calculate_streak_risk(habit_id, view, as_of, streak=streak),
        momentum=calculate_momentum(habit_id, view, as_of),
        heatmap=generate_time_heatmap(habit_id, view, as_of),
        failure_reasons=analyze_failure_reasons(habit_id, view, as_of),
    )


def build_user_report(habits: Sequence[Habit], view: LogView, as_of: date) -> UserReport:
    active = [h for h in habits if h.active]
    reports = [build_habit_report(h.id, view, as_of) for h in active]
    return UserReport(
        as_of=as_of,
        habits=reports,
        keystones=detect_keystone_habits(active, view, as_of),
        burnout=assess_burnout(len(active), [r.momentum for r in reports]),
        insights=generate_insights(active, view, as_of),
    )
