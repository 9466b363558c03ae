"""
habitrat/features/storage/sql.py

SQLAlchemy Core store (PostgreSQL in production, SQLite in tests).

Maintains identical interface to InMemoryStore. Analytics writes are
upserts keyed on the natural key, so re-running a job overwrites rather
than duplicates.
"""

from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import and_, delete, insert, select

from habitrat.core.database import (
    get_db_session,
    habit_analytics_daily,
    habit_correlations,
    habit_logs,
    habits,
    job_runs,
    notification_history,
    notification_settings,
    profiles,
    upsert_row,
    user_burnout_daily,
)
from habitrat.models.analytics import HabitAnalyticsDaily, HabitCorrelation, JobRun, UserBurnoutDaily
from habitrat.models.habit import Habit, LogDetails, LogEntry
from habitrat.models.notification import NotificationHistory, NotificationSettings, PushRecipient


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _habit_from_row(row) -> Habit:
    return Habit(
        id=row.id,
        name=row.name,
        owner_id=row.user_id,
        target_description=row.target_description,
        icon=row.icon,
        active=bool(row.is_active),
        created_at=_as_utc(row.created_at),
    )


def _entry_from_row(row) -> LogEntry:
    if row.details:
        value = LogDetails.model_validate({**row.details, "completed": bool(row.completed)})
    else:
        value = bool(row.completed)
    return LogEntry(user_id=row.user_id, habit_id=row.habit_id, log_date=row.log_date, value=value)


def _analytics_from_row(row) -> HabitAnalyticsDaily:
    return HabitAnalyticsDaily(
        habit_id=row.habit_id,
        user_id=row.user_id,
        analytics_date=row.analytics_date,
        consistency_score=row.consistency_score,
        streak_fragility=row.streak_fragility,
        momentum=row.momentum,
        momentum_slope=row.momentum_slope,
        burnout_signal=bool(row.burnout_signal),
    )


def _burnout_from_row(row) -> UserBurnoutDaily:
    return UserBurnoutDaily(
        user_id=row.user_id,
        analytics_date=row.analytics_date,
        risk_level=row.risk_level,
        signals=list(row.signals or []),
        recommendation=row.recommendation,
    )


class SqlStore:
    # ------------------------------------------------------------------
    # Seeding (the mobile client owns these tables in production)
    # ------------------------------------------------------------------

    def add_habit(self, habit: Habit) -> None:
        values = {
            "id": habit.id,
            "user_id": habit.owner_id,
            "name": habit.name,
            "target_description": habit.target_description,
            "icon": habit.icon,
            "is_active": habit.active,
        }
        if habit.created_at is not None:
            values["created_at"] = habit.created_at
        with get_db_session() as session:
            upsert_row(session, habits, values, ["id"])

    def add_log(self, entry: LogEntry) -> None:
        if isinstance(entry.value, bool):
            completed, details = entry.value, None
        else:
            completed = entry.value.completed
            details = entry.value.model_dump(mode="json", exclude_none=True, exclude={"completed"}) or None
        values = {
            "user_id": entry.user_id,
            "habit_id": entry.habit_id,
            "log_date": entry.log_date,
            "completed": completed,
            "details": details,
        }
        with get_db_session() as session:
            upsert_row(session, habit_logs, values, ["user_id", "habit_id", "log_date"])

    def set_push_recipient(self, recipient: PushRecipient) -> None:
        with get_db_session() as session:
            upsert_row(
                session,
                profiles,
                {
                    "user_id": recipient.user_id,
                    "push_token": recipient.push_token,
                    "utc_offset_minutes": recipient.utc_offset_minutes,
                },
                ["user_id"],
            )
            upsert_row(
                session,
                notification_settings,
                {
                    "user_id": recipient.user_id,
                    "focus_mode": recipient.settings.focus_mode,
                    "quiet_hours_start": recipient.settings.quiet_hours_start,
                    "quiet_hours_end": recipient.settings.quiet_hours_end,
                },
                ["user_id"],
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_active_user_ids(self) -> List[str]:
        with get_db_session() as session:
            result = session.execute(
                select(habits.c.user_id)
                .where(habits.c.is_active.is_(True))
                .distinct()
                .order_by(habits.c.user_id)
            )
            return [row.user_id for row in result]

    def get_active_habits(self, user_id: str) -> List[Habit]:
        with get_db_session() as session:
            result = session.execute(
                select(habits)
                .where(and_(habits.c.user_id == user_id, habits.c.is_active.is_(True)))
                .order_by(habits.c.id)
            )
            return [_habit_from_row(row) for row in result]

    def get_entries(self, user_id: str, habit_id: Optional[str], start: date, end: date) -> List[LogEntry]:
        filters = [
            habit_logs.c.user_id == user_id,
            habit_logs.c.log_date >= start,
            habit_logs.c.log_date <= end,
        ]
        if habit_id is not None:
            filters.append(habit_logs.c.habit_id == habit_id)

        with get_db_session() as session:
            result = session.execute(
                select(habit_logs)
                .where(and_(*filters))
                .order_by(habit_logs.c.log_date, habit_logs.c.habit_id)
            )
            return [_entry_from_row(row) for row in result]

    def list_push_recipients(self) -> List[PushRecipient]:
        query = (
            select(
                profiles.c.user_id,
                profiles.c.push_token,
                profiles.c.utc_offset_minutes,
                notification_settings.c.focus_mode,
                notification_settings.c.quiet_hours_start,
                notification_settings.c.quiet_hours_end,
            )
            .select_from(
                profiles.outerjoin(notification_settings, profiles.c.user_id == notification_settings.c.user_id)
            )
            .where(profiles.c.push_token.isnot(None))
            .order_by(profiles.c.user_id)
        )
        with get_db_session() as session:
            recipients = []
            for row in session.execute(query):
                if not row.push_token:
                    continue
                recipients.append(
                    PushRecipient(
                        user_id=row.user_id,
                        push_token=row.push_token,
                        utc_offset_minutes=row.utc_offset_minutes,
                        settings=NotificationSettings(
                            focus_mode=bool(row.focus_mode),
                            quiet_hours_start=row.quiet_hours_start,
                            quiet_hours_end=row.quiet_hours_end,
                        ),
                    )
                )
            return recipients

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_habit_analytics(self, row: HabitAnalyticsDaily) -> None:
        with get_db_session() as session:
            upsert_row(session, habit_analytics_daily, row.model_dump(), ["habit_id", "analytics_date"])

    def upsert_user_burnout(self, row: UserBurnoutDaily) -> None:
        with get_db_session() as session:
            upsert_row(session, user_burnout_daily, row.model_dump(), ["user_id", "analytics_date"])

    def replace_habit_correlations(self, user_id: str, rows: Sequence[HabitCorrelation]) -> int:
        # Delete and insert in one transaction so readers never see a half-written set
        with get_db_session() as session:
            session.execute(delete(habit_correlations).where(habit_correlations.c.user_id == user_id))
            if rows:
                session.execute(insert(habit_correlations), [r.model_dump() for r in rows])
        return len(rows)

    def append_notification_history(self, row: NotificationHistory) -> None:
        with get_db_session() as session:
            session.execute(insert(notification_history).values(**row.model_dump()))

    def record_job_run(self, run: JobRun) -> None:
        with get_db_session() as session:
            session.execute(insert(job_runs).values(**run.model_dump()))

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_habit_analytics(self, habit_id: str, analytics_date: Optional[date] = None) -> Optional[HabitAnalyticsDaily]:
        query = select(habit_analytics_daily).where(habit_analytics_daily.c.habit_id == habit_id)
        if analytics_date is not None:
            query = query.where(habit_analytics_daily.c.analytics_date == analytics_date)
        query = query.order_by(habit_analytics_daily.c.analytics_date.desc()).limit(1)
        with get_db_session() as session:
            row = session.execute(query).first()
            return _analytics_from_row(row) if row else None

    def get_user_burnout(self, user_id: str, analytics_date: Optional[date] = None) -> Optional[UserBurnoutDaily]:
        query = select(user_burnout_daily).where(user_burnout_daily.c.user_id == user_id)
        if analytics_date is not None:
            query = query.where(user_burnout_daily.c.analytics_date == analytics_date)
        query = query.order_by(user_burnout_daily.c.analytics_date.desc()).limit(1)
        with get_db_session() as session:
            row = session.execute(query).first()
            return _burnout_from_row(row) if row else None

    def get_habit_correlations(self, user_id: str) -> List[HabitCorrelation]:
        with get_db_session() as session:
            result = session.execute(
                select(habit_correlations)
                .where(habit_correlations.c.user_id == user_id)
                .order_by(habit_correlations.c.habit_a, habit_correlations.c.habit_b)
            )
            return [
                HabitCorrelation(
                    user_id=row.user_id,
                    habit_a=row.habit_a,
                    habit_b=row.habit_b,
                    correlation_score=row.correlation_score,
                )
                for row in result
            ]

    def get_notification_history(self, user_id: str, since: Optional[datetime] = None) -> List[NotificationHistory]:
        query = select(notification_history).where(notification_history.c.user_id == user_id)
        if since is not None:
            query = query.where(notification_history.c.sent_at >= since)
        query = query.order_by(notification_history.c.sent_at, notification_history.c.id)
        with get_db_session() as session:
            return [
                NotificationHistory(
                    user_id=row.user_id,
                    habit_id=row.habit_id,
                    sent_at=_as_utc(row.sent_at),
                    notification_type=row.notification_type,
                    title=row.title,
                    body=row.body,
                )
                for row in session.execute(query)
            ]

    def list_job_runs(self, job_name: Optional[str] = None) -> List[JobRun]:
        query = select(job_runs)
        if job_name is not None:
            query = query.where(job_runs.c.job_name == job_name)
        query = query.order_by(job_runs.c.id)
        with get_db_session() as session:
            return [
                JobRun(
                    job_name=row.job_name,
                    run_id=row.run_id,
                    as_of=row.as_of,
                    started_at=_as_utc(row.started_at),
                    finished_at=_as_utc(row.finished_at),
                    status=row.status,
                    stats=dict(row.stats or {}),
                )
                for row in session.execute(query)
            ]

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        with get_db_session() as session:
            for table in (
                job_runs,
                notification_history,
                habit_correlations,
                user_burnout_daily,
                habit_analytics_daily,
                notification_settings,
                profiles,
                habit_logs,
                habits,
            ):
                session.execute(table.delete())
