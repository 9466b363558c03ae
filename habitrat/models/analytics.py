"""
habitrat/models/analytics.py

Metric library results and the persisted analytics records.
Analytics records carry no wall-clock fields so a re-run for the same key is byte-identical.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ConsistencyTrend = Literal["up", "down", "neutral"]
RiskLevel = Literal["Low", "Medium", "High"]
MomentumStatus = Literal["Improving", "Stable", "Declining"]
Confidence = Literal["High", "Medium", "Low"]


# ---------------------------------------------------------------------------
# Metric library results
# ---------------------------------------------------------------------------

class ConsistencyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    trend: ConsistencyTrend
    change_7d: int


class StreakRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_percentage: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    primary_factor: str


class HeatmapCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=0, le=6, description="0 = Sunday")
    hour: int = Field(ge=0, le=23)
    count: int = Field(ge=1)
    intensity: float = Field(gt=0, le=1)


class MomentumResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    momentum: MomentumStatus
    slope: float
    rate_7d: float
    rate_14d: float
    rate_30d: float
    confidence: Confidence


class FailureReasonShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    percentage: int


class FailureReasonSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    top_reasons: List[FailureReasonShare]
    total_failures: int


class KeystoneHabit(BaseModel):
    model_config = ConfigDict(frozen=True)

    habit_id: str
    habit: str
    impact_score: float
    affected_habits: List[str]


class BurnoutAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    risk_level: RiskLevel
    signals: List[str]
    recommendation: str


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class HabitAnalyticsDaily(BaseModel):
    """One row per (habit_id, analytics_date)."""

    model_config = ConfigDict(frozen=True)

    habit_id: str
    user_id: str
    analytics_date: date
    consistency_score: int = Field(ge=0, le=100)
    streak_fragility: int = Field(ge=0, le=100)
    momentum: MomentumStatus
    momentum_slope: float
    burnout_signal: bool


class UserBurnoutDaily(BaseModel):
    """One row per (user_id, analytics_date)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    analytics_date: date
    risk_level: RiskLevel
    signals: List[str] = Field(description="Sorted, unique")
    recommendation: str


class HabitCorrelation(BaseModel):
    """Directed pair: habit_a lifts habit_b."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    habit_a: str
    habit_b: str
    correlation_score: float


class JobRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_name: str
    run_id: str
    as_of: str
    started_at: datetime
    finished_at: datetime
    status: Literal["success", "partial", "failed"]
    stats: dict


class UserJobResult(BaseModel):
    """Outcome of one unit of work (one user) inside a batch run."""

    user_id: str
    status: Literal[
        "processed",
        "no_habits",
        "insufficient_habits",
        "insufficient_data",
        "error",
    ]
    habits_processed: int = 0
    rows_written: int = 0
    rows_failed: int = 0
    detail: Optional[str] = None
