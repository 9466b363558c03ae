"""
habitrat/models/habit.py

Habit directory and completion log read models.
Both are written by the mobile client; the pipeline only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Mood = Literal["happy", "neutral", "stressed", "tired"]


class Habit(BaseModel):
    """A user-owned habit. Deactivated habits keep their logs."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    owner_id: str
    target_description: Optional[str] = None
    icon: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None


class LogDetails(BaseModel):
    """Structured form of a log value. Accepts the client's camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    completed: bool
    completion_time: Optional[datetime] = Field(default=None, alias="completionTime")
    failure_reason: Optional[str] = Field(default=None, alias="failureReason")
    mood: Optional[Mood] = None


LogValue = Union[bool, LogDetails]


class LogEntry(BaseModel):
    """One completion record, unique per (user_id, habit_id, log_date)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    habit_id: str
    log_date: date = Field(description="User-local calendar day")
    value: LogValue


@dataclass(frozen=True)
class NormalizedEntry:
    """Result of get_log_entry: one shape regardless of how the value was stored."""

    completed: bool
    metadata: Optional[LogDetails] = None
    recorded: bool = False

    @property
    def completion_time(self) -> Optional[datetime]:
        return self.metadata.completion_time if self.metadata else None

    @property
    def failure_reason(self) -> Optional[str]:
        return self.metadata.failure_reason if self.metadata else None
