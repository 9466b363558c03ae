"""
Queue client and worker CLI tests (no Redis: the queue is swapped for a recorder)
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from habitrat import queue_client
from habitrat.models.notification import PushRecipient
from habitrat.tests.factories import entries_for, make_habit, seed
from habitrat.workers import correlations as correlations_worker
from habitrat.workers import daily_analytics as daily_worker
from habitrat.workers import notifications as notifications_worker


class RecordingQueue:
    def __init__(self):
        self.calls = []

    def enqueue(self, func, *args, **kwargs):
        self.calls.append((func, args, kwargs))
        return SimpleNamespace(id=f"job-{len(self.calls)}")


@pytest.fixture
def queue():
    q = RecordingQueue()
    queue_client.set_queue(q)
    yield q
    queue_client.set_queue(None)


class TestQueueClient:
    def test_enqueue_daily_analytics(self, queue):
        job_id = queue_client.enqueue_daily_analytics(date(2025, 6, 30), ["u1"])
        func, args, kwargs = queue.calls[0]
        assert job_id == "job-1"
        assert func == "habitrat.workers.daily_analytics.run"
        assert args == ("2025-06-30", ["u1"])
        assert kwargs["job_timeout"] == "30m"

    def test_enqueue_correlations(self, queue):
        queue_client.enqueue_correlations(date(2025, 6, 30))
        func, args, _ = queue.calls[0]
        assert func == "habitrat.workers.correlations.run"
        assert args == ("2025-06-30", None)

    def test_enqueue_notifications(self, queue):
        now = datetime(2025, 6, 30, 15, tzinfo=timezone.utc)
        queue_client.enqueue_notifications(now, dry_run=True)
        func, args, _ = queue.calls[0]
        assert func == "habitrat.workers.notifications.run"
        assert args == ("2025-06-30T15:00:00+00:00", None, True)


class TestWorkerEntryPoints:
    def test_daily_run_returns_summary(self, store, fixed_as_of):
        seed(store, [make_habit("run")], entries_for("run", fixed_as_of, done=range(10)))
        summary = daily_worker.run(fixed_as_of.isoformat())
        assert summary == {"as_of": "2025-06-30", "users": 1, "statuses": {"processed": 1}}

    def test_daily_main_exit_code(self, store, fixed_as_of):
        seed(store, [make_habit("run")], entries_for("run", fixed_as_of, done=range(10)))
        assert daily_worker.main(["--as-of", "2025-06-30", "--user-id", "u1"]) == 0
        assert store.get_habit_analytics("run", fixed_as_of) is not None

    def test_default_as_of_is_yesterday_in_utc(self):
        assert daily_worker.default_as_of(datetime(2025, 7, 1, 2, 0, tzinfo=timezone.utc)) == date(2025, 6, 30)

    def test_default_as_of_follows_offset(self):
        now = datetime(2025, 7, 1, 2, 0, tzinfo=timezone.utc)
        # Local clock is still June 30 in UTC-5
        assert daily_worker.default_as_of(now, utc_offset_minutes=-300) == date(2025, 6, 29)
        assert daily_worker.default_as_of(now, utc_offset_minutes=840) == date(2025, 6, 30)
        assert daily_worker.default_as_of(datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc), 840) == date(2025, 7, 1)

    def test_bad_date_is_rejected(self, store):
        with pytest.raises(SystemExit):
            daily_worker.main(["--as-of", "30/06/2025"])

    def test_correlations_main(self, store, fixed_as_of):
        store.add_habit(make_habit("run"))
        assert correlations_worker.main(["--as-of", "2025-06-30"]) == 0
        assert correlations_worker.run("2025-06-30")["statuses"] == {"insufficient_habits": 1}

    def test_notifications_dry_run(self, store, fixed_as_of):
        seed(store, [make_habit("run")], entries_for("run", fixed_as_of, done=[1]))
        store.set_push_recipient(PushRecipient(user_id="u1", push_token="ExponentPushToken[x]", utc_offset_minutes=0))

        assert notifications_worker.main(["--now", "2025-06-30T15:00:00Z", "--dry-run", "--seed", "1"]) == 0
        assert store.get_notification_history("u1") == []

        summary = notifications_worker.run("2025-06-30T15:00:00+00:00", dry_run=True)
        assert summary["statuses"] == {"planned": 1}
