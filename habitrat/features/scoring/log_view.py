"""
habitrat/features/scoring/log_view.py

In-memory window over a user's completion log, and the single
normalization boundary for the two stored value shapes.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from habitrat.models.habit import LogDetails, LogEntry, LogValue, NormalizedEntry


class LogView:
    """Read-only (day, habit_id) -> value lookup. Never mutated by the pipeline."""

    def __init__(self, entries: Iterable[LogEntry] = ()):
        self._values: Dict[Tuple[date, str], LogValue] = {}
        for entry in entries:
            self._values[(entry.log_date, entry.habit_id)] = entry.value

    @classmethod
    def from_mapping(
        cls,
        logs: Mapping[Union[str, date], Mapping[str, Union[bool, dict, LogDetails]]],
        user_id: str = "preview",
    ) -> "LogView":
        """Build a view from the client's `{day: {habit_id: value}}` shape."""
        entries = []
        for day, habits in logs.items():
            log_date = day if isinstance(day, date) else date.fromisoformat(day)
            for habit_id, raw in habits.items():
                value = raw if isinstance(raw, (bool, LogDetails)) else LogDetails.model_validate(raw)
                entries.append(LogEntry(user_id=user_id, habit_id=habit_id, log_date=log_date, value=value))
        return cls(entries)

    def raw(self, day: date, habit_id: str) -> Optional[LogValue]:
        return self._values.get((day, habit_id))

    def recorded_days(self, habit_id: str) -> Iterator[date]:
        return (day for (day, hid) in self._values if hid == habit_id)

    def earliest_day(self, habit_id: str) -> Optional[date]:
        return min(self.recorded_days(habit_id), default=None)

    def __len__(self) -> int:
        return len(self._values)


def get_log_entry(view: LogView, day: date, habit_id: str) -> NormalizedEntry:
    """Normalize a stored value. Absence means "not attempted": completed=False, recorded=False."""
    value = view.raw(day, habit_id)
    if value is None:
        return NormalizedEntry(completed=False)
    if isinstance(value, bool):
        return NormalizedEntry(completed=value, recorded=True)
    return NormalizedEntry(completed=value.completed, metadata=value, recorded=True)


def window_days(end: date, days: int) -> Iterator[date]:
    """Days from `end` backwards, `end` first."""
    for i in range(days):
        yield end - timedelta(days=i)


def completion_rate(view: LogView, habit_id: str, as_of: date, days: int) -> float:
    if days <= 0:
        return 0.0
    hits = sum(1 for day in window_days(as_of, days) if get_log_entry(view, day, habit_id).completed)
    return hits / days
