"""
habitrat/models/notification.py

Push recipients, rendered push messages and the append-only history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

NotificationCategory = Literal["streak_protection", "identity", "recovery", "basic"]

CATEGORY_PRIORITY: Dict[str, int] = {
    "streak_protection": 10,
    "recovery": 8,
    "identity": 5,
    "basic": 1,
}


class NotificationSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    focus_mode: bool = False
    quiet_hours_start: Optional[int] = Field(default=None, ge=0, le=23)
    quiet_hours_end: Optional[int] = Field(default=None, ge=0, le=23)


class PushRecipient(BaseModel):
    """A user with a deliverable push credential."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    push_token: str
    utc_offset_minutes: Optional[int] = Field(default=None, ge=-14 * 60, le=14 * 60)
    settings: NotificationSettings = Field(default_factory=NotificationSettings)


class PushMessage(BaseModel):
    """Payload handed to the dispatch collaborator."""

    model_config = ConfigDict(frozen=True)

    to: str
    title: str
    body: str
    data: Dict[str, str]
    sound: str = "default"


class NotificationHistory(BaseModel):
    """Append-only, keyed by (user_id, habit_id, sent_at)."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    habit_id: str
    sent_at: datetime
    notification_type: NotificationCategory
    title: str
    body: str


class NotificationDecision(BaseModel):
    """Outcome of the engine for one user in one run."""

    user_id: str
    status: Literal["sent", "planned", "focus_mode", "quiet_hours", "nothing_due", "dispatch_failed", "error"]
    habit_id: Optional[str] = None
    category: Optional[NotificationCategory] = None
    priority: Optional[int] = None
    body: Optional[str] = None
    detail: Optional[str] = None
