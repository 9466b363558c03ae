"""
habitrat/features/storage/base.py

Storage interface shared by the in-memory and SQL stores.

Jobs and the read API only talk to this interface; which implementation
backs it is decided once by get_store().
"""

from datetime import date, datetime
from typing import List, Optional, Protocol, Sequence

from habitrat.models.analytics import HabitAnalyticsDaily, HabitCorrelation, JobRun, UserBurnoutDaily
from habitrat.models.habit import Habit, LogEntry
from habitrat.models.notification import NotificationHistory, PushRecipient


class AnalyticsStore(Protocol):
    # Habit directory and completion log (read-only for the pipeline)
    def list_active_user_ids(self) -> List[str]: ...

    def get_active_habits(self, user_id: str) -> List[Habit]: ...

    def get_entries(
        self,
        user_id: str,
        habit_id: Optional[str],
        start: date,
        end: date,
    ) -> List[LogEntry]: ...

    def list_push_recipients(self) -> List[PushRecipient]: ...

    # Analytics records
    def upsert_habit_analytics(self, row: HabitAnalyticsDaily) -> None: ...

    def upsert_user_burnout(self, row: UserBurnoutDaily) -> None: ...

    def replace_habit_correlations(self, user_id: str, rows: Sequence[HabitCorrelation]) -> int: ...

    def append_notification_history(self, row: NotificationHistory) -> None: ...

    def record_job_run(self, run: JobRun) -> None: ...

    # Read API
    def get_habit_analytics(self, habit_id: str, analytics_date: Optional[date] = None) -> Optional[HabitAnalyticsDaily]: ...

    def get_user_burnout(self, user_id: str, analytics_date: Optional[date] = None) -> Optional[UserBurnoutDaily]: ...

    def get_habit_correlations(self, user_id: str) -> List[HabitCorrelation]: ...

    def get_notification_history(self, user_id: str, since: Optional[datetime] = None) -> List[NotificationHistory]: ...

    def list_job_runs(self, job_name: Optional[str] = None) -> List[JobRun]: ...
