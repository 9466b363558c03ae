"""
habitrat/features/storage/memory.py

In-memory store used by tests, local development and as the fallback
when no database is reachable. Same interface as SqlStore.
"""

import threading
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple

from habitrat.models.analytics import HabitAnalyticsDaily, HabitCorrelation, JobRun, UserBurnoutDaily
from habitrat.models.habit import Habit, LogEntry
from habitrat.models.notification import NotificationHistory, PushRecipient


class InMemoryStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._habits: Dict[str, Habit] = {}
        self._logs: Dict[Tuple[str, str, date], LogEntry] = {}
        self._recipients: Dict[str, PushRecipient] = {}
        self._habit_analytics: Dict[Tuple[str, date], HabitAnalyticsDaily] = {}
        self._user_burnout: Dict[Tuple[str, date], UserBurnoutDaily] = {}
        self._correlations: Dict[str, List[HabitCorrelation]] = {}
        self._history: List[NotificationHistory] = []
        self._job_runs: List[JobRun] = []

    # ------------------------------------------------------------------
    # Seeding (the mobile client owns these tables in production)
    # ------------------------------------------------------------------

    def add_habit(self, habit: Habit) -> None:
        with self._lock:
            self._habits[habit.id] = habit

    def add_log(self, entry: LogEntry) -> None:
        with self._lock:
            self._logs[(entry.user_id, entry.habit_id, entry.log_date)] = entry

    def set_push_recipient(self, recipient: PushRecipient) -> None:
        with self._lock:
            self._recipients[recipient.user_id] = recipient

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_active_user_ids(self) -> List[str]:
        with self._lock:
            return sorted({h.owner_id for h in self._habits.values() if h.active})

    def get_active_habits(self, user_id: str) -> List[Habit]:
        with self._lock:
            habits = [h for h in self._habits.values() if h.owner_id == user_id and h.active]
        return sorted(habits, key=lambda h: h.id)

    def get_entries(self, user_id: str, habit_id: Optional[str], start: date, end: date) -> List[LogEntry]:
        with self._lock:
            entries = [
                e for (uid, hid, day), e in self._logs.items()
                if uid == user_id
                and (habit_id is None or hid == habit_id)
                and start <= day <= end
            ]
        return sorted(entries, key=lambda e: (e.log_date, e.habit_id))

    def list_push_recipients(self) -> List[PushRecipient]:
        with self._lock:
            return [self._recipients[uid] for uid in sorted(self._recipients) if self._recipients[uid].push_token]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_habit_analytics(self, row: HabitAnalyticsDaily) -> None:
        with self._lock:
            self._habit_analytics[(row.habit_id, row.analytics_date)] = row

    def upsert_user_burnout(self, row: UserBurnoutDaily) -> None:
        with self._lock:
            self._user_burnout[(row.user_id, row.analytics_date)] = row

    def replace_habit_correlations(self, user_id: str, rows: Sequence[HabitCorrelation]) -> int:
        with self._lock:
            self._correlations[user_id] = list(rows)
        return len(rows)

    def append_notification_history(self, row: NotificationHistory) -> None:
        with self._lock:
            self._history.append(row)

    def record_job_run(self, run: JobRun) -> None:
        with self._lock:
            self._job_runs.append(run)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_habit_analytics(self, habit_id: str, analytics_date: Optional[date] = None) -> Optional[HabitAnalyticsDaily]:
        with self._lock:
            if analytics_date is not None:
                return self._habit_analytics.get((habit_id, analytics_date))
            rows = [r for (hid, _), r in self._habit_analytics.items() if hid == habit_id]
        return max(rows, key=lambda r: r.analytics_date, default=None)

    def get_user_burnout(self, user_id: str, analytics_date: Optional[date] = None) -> Optional[UserBurnoutDaily]:
        with self._lock:
            if analytics_date is not None:
                return self._user_burnout.get((user_id, analytics_date))
            rows = [r for (uid, _), r in self._user_burnout.items() if uid == user_id]
        return max(rows, key=lambda r: r.analytics_date, default=None)

    def get_habit_correlations(self, user_id: str) -> List[HabitCorrelation]:
        with self._lock:
            rows = list(self._correlations.get(user_id, []))
        return sorted(rows, key=lambda r: (r.habit_a, r.habit_b))

    def get_notification_history(self, user_id: str, since: Optional[datetime] = None) -> List[NotificationHistory]:
        with self._lock:
            rows = [
                r for r in self._history
                if r.user_id == user_id and (since is None or r.sent_at >= since)
            ]
        return sorted(rows, key=lambda r: r.sent_at)

    def list_job_runs(self, job_name: Optional[str] = None) -> List[JobRun]:
        with self._lock:
            return [r for r in self._job_runs if job_name is None or r.job_name == job_name]

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        self.__init__()
