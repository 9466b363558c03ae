"""Builders for habits and completion logs used across the tests."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional

from habitrat.features.scoring.log_view import LogView
from habitrat.models.habit import Habit, LogDetails, LogEntry


def make_habit(
    habit_id: str,
    user_id: str = "u1",
    name: Optional[str] = None,
    active: bool = True,
    created: Optional[date] = None,
) -> Habit:
    created_at = datetime.combine(created, time(8, 0), tzinfo=timezone.utc) if created else None
    return Habit(id=habit_id, name=name or habit_id.title(), owner_id=user_id, active=active, created_at=created_at)


def entries_for(
    habit_id: str,
    as_of: date,
    done: Iterable[int] = (),
    missed: Iterable[int] = (),
    user_id: str = "u1",
) -> List[LogEntry]:
    """
    Plain boolean entries addressed by days before `as_of` (0 = as_of).
    Offsets in neither list get no entry at all.
    """
    entries = [
        LogEntry(user_id=user_id, habit_id=habit_id, log_date=as_of - timedelta(days=d), value=True)
        for d in done
    ]
    entries += [
        LogEntry(user_id=user_id, habit_id=habit_id, log_date=as_of - timedelta(days=d), value=False)
        for d in missed
    ]
    return entries


def detailed_entry(
    habit_id: str,
    day: date,
    completed: bool,
    hour: Optional[int] = None,
    reason: Optional[str] = None,
    user_id: str = "u1",
) -> LogEntry:
    completion_time = None
    if hour is not None:
        completion_time = datetime.combine(day, time(hour, 0), tzinfo=timezone.utc)
    return LogEntry(
        user_id=user_id,
        habit_id=habit_id,
        log_date=day,
        value=LogDetails(completed=completed, completion_time=completion_time, failure_reason=reason),
    )


def view_of(*entry_lists: Iterable[LogEntry]) -> LogView:
    merged: List[LogEntry] = []
    for entries in entry_lists:
        merged.extend(entries)
    return LogView(merged)


def seed(store, habits: Iterable[Habit], entries: Iterable[LogEntry]) -> None:
    for habit in habits:
        store.add_habit(habit)
    for entry in entries:
        store.add_log(entry)
