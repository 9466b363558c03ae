"""
Notification decision engine tests

Verify:
1. Arbitration order: streak_protection > identity > recovery > basic
2. Per-user cap: at most one notification per run
3. Focus mode and quiet hours (user-local) suppress sends
4. "Today" is the user's local date
5. Anti-fatigue cooldown per (habit, category)
6. Dispatch failures write no history
"""

import logging
import random
from datetime import timedelta

import pytest

from habitrat.core.config import settings
from habitrat.core.metrics import notifications_sent_total
from habitrat.features.notifications.engine import choose_category, in_quiet_hours, local_time, run_notifications
from habitrat.features.notifications.templates import DEFAULT_TITLE, STREAK_TITLE, TEMPLATES
from habitrat.models.notification import NotificationSettings, PushRecipient
from habitrat.tests.factories import entries_for, make_habit, seed


class RecordingDispatcher:
    def __init__(self, accept=True):
        self.batches = []
        self.accept = accept

    def send(self, messages):
        self.batches.append(list(messages))
        return [self.accept] * len(messages)


class ExplodingDispatcher:
    def send(self, messages):
        raise ConnectionError("push service down")


def _recipient(user_id="u1", offset=0, **prefs):
    return PushRecipient(
        user_id=user_id,
        push_token=f"ExponentPushToken[{user_id}]",
        utc_offset_minutes=offset,
        settings=NotificationSettings(**prefs),
    )


def _today(fixed_now, offset=0):
    return local_time(fixed_now, offset).date()


class TestArbitration:
    @pytest.mark.parametrize(
        "streak,consistency,missed,expected",
        [
            (4, 10.0, False, ("streak_protection", 10)),
            (4, 95.0, True, ("streak_protection", 10)),
            (3, 90.0, False, ("identity", 5)),
            (0, 90.0, True, ("identity", 5)),
            (0, 80.0, True, ("recovery", 8)),
            (1, 10.0, False, ("basic", 1)),
        ],
    )
    def test_first_match_wins(self, streak, consistency, missed, expected):
        assert choose_category(streak, consistency, missed) == expected

    def test_quiet_hours_wrap_midnight(self):
        prefs = NotificationSettings(quiet_hours_start=22, quiet_hours_end=7)
        assert in_quiet_hours(23, prefs)
        assert in_quiet_hours(0, prefs)
        assert not in_quiet_hours(7, prefs)
        assert not in_quiet_hours(12, prefs)

    def test_quiet_hours_same_day_and_disabled(self):
        assert in_quiet_hours(13, NotificationSettings(quiet_hours_start=12, quiet_hours_end=14))
        assert not in_quiet_hours(14, NotificationSettings(quiet_hours_start=12, quiet_hours_end=14))
        assert not in_quiet_hours(3, NotificationSettings(quiet_hours_start=5, quiet_hours_end=5))
        assert not in_quiet_hours(3, NotificationSettings())


class TestCategories:
    def _run_single(self, store, fixed_now, done):
        today = _today(fixed_now)
        seed(store, [make_habit("run", name="Running")], entries_for("run", today, done=done))
        store.set_push_recipient(_recipient())
        dispatcher = RecordingDispatcher()
        decisions = run_notifications(fixed_now, dispatcher=dispatcher, rng=random.Random(7))
        return decisions[0], dispatcher

    def test_streak_protection(self, store, fixed_now):
        decision, dispatcher = self._run_single(store, fixed_now, done=[1, 2, 3, 4, 5])
        assert decision.status == "sent"
        assert decision.category == "streak_protection"
        assert decision.priority == 10
        message = dispatcher.batches[0][0]
        assert message.title == STREAK_TITLE
        assert message.data == {"habit_id": "run", "category": "streak_protection"}
        assert "{habit}" not in message.body and "{streak}" not in message.body

    def test_identity(self, store, fixed_now):
        done = [1, 2, 3] + list(range(5, 31))
        decision, dispatcher = self._run_single(store, fixed_now, done=done)
        assert decision.category == "identity"
        assert dispatcher.batches[0][0].title == DEFAULT_TITLE

    def test_recovery(self, store, fixed_now):
        decision, _ = self._run_single(store, fixed_now, done=[2, 3])
        assert decision.category == "recovery"
        assert decision.priority == 8

    def test_basic(self, store, fixed_now):
        decision, _ = self._run_single(store, fixed_now, done=[1])
        assert decision.category == "basic"

    def test_completed_today_is_skipped(self, store, fixed_now):
        decision, dispatcher = self._run_single(store, fixed_now, done=[0, 1, 2, 3, 4, 5])
        assert decision.status == "nothing_due"
        assert dispatcher.batches == []

    def test_body_renders_from_templates(self, store, fixed_now):
        decision, _ = self._run_single(store, fixed_now, done=[1])
        rendered = {t.replace("{habit}", "Running").replace("{streak}", "1") for t in TEMPLATES["basic"]}
        assert decision.body in rendered


class TestPerUserCap:
    def test_three_eligible_habits_send_one(self, store, fixed_now):
        today = _today(fixed_now)
        habits = [make_habit(h) for h in ("a", "b", "c")]
        entries = []
        for habit in habits:
            entries += entries_for(habit.id, today, done=range(1, 10))
        seed(store, habits, entries)
        store.set_push_recipient(_recipient())
        dispatcher = RecordingDispatcher()

        decisions = run_notifications(fixed_now, dispatcher=dispatcher)

        assert len(decisions) == 1
        assert sum(len(b) for b in dispatcher.batches) == 1
        assert len(store.get_notification_history("u1")) == 1
        assert notifications_sent_total.value({"category": "streak_protection"}) == 1

    def test_users_are_batched_together(self, store, fixed_now):
        today = _today(fixed_now)
        for uid in ("u1", "u2"):
            seed(store, [make_habit(f"{uid}-h", uid)], entries_for(f"{uid}-h", today, done=[1], user_id=uid))
            store.set_push_recipient(_recipient(uid))
        dispatcher = RecordingDispatcher()

        run_notifications(fixed_now, dispatcher=dispatcher)

        assert len(dispatcher.batches) == 1
        assert len(dispatcher.batches[0]) == 2


class TestSuppression:
    def _seed(self, store, fixed_now):
        seed(store, [make_habit("run")], entries_for("run", _today(fixed_now), done=[1, 2, 3, 4, 5]))

    def test_focus_mode(self, store, fixed_now):
        self._seed(store, fixed_now)
        store.set_push_recipient(_recipient(focus_mode=True))
        dispatcher = RecordingDispatcher()
        decisions = run_notifications(fixed_now, dispatcher=dispatcher)
        assert decisions[0].status == "focus_mode"
        assert dispatcher.batches == []

    def test_quiet_hours_use_local_time(self, store, fixed_now):
        self._seed(store, fixed_now)
        # 15:00 UTC is 00:00 at UTC+9
        store.set_push_recipient(_recipient(offset=9 * 60, quiet_hours_start=22, quiet_hours_end=7))
        decisions = run_notifications(fixed_now, dispatcher=RecordingDispatcher())
        assert decisions[0].status == "quiet_hours"

    def test_quiet_hours_outside_window_send(self, store, fixed_now):
        self._seed(store, fixed_now)
        store.set_push_recipient(_recipient(offset=0, quiet_hours_start=22, quiet_hours_end=7))
        decisions = run_notifications(fixed_now, dispatcher=RecordingDispatcher())
        assert decisions[0].status == "sent"


class TestLocalToday:
    def test_today_follows_utc_offset(self, store, fixed_now):
        early_utc = fixed_now.replace(hour=2)
        # 02:00 UTC is 21:00 the previous day at UTC-5
        local_day = local_time(early_utc, -300).date()
        assert local_day == early_utc.date() - timedelta(days=1)
        seed(store, [make_habit("run")], entries_for("run", local_day, done=[0, 1, 2]))

        store.set_push_recipient(_recipient(offset=-300))
        assert run_notifications(early_utc, dispatcher=RecordingDispatcher())[0].status == "nothing_due"

        store.set_push_recipient(_recipient(offset=0))
        assert run_notifications(early_utc, dispatcher=RecordingDispatcher())[0].status == "sent"

    def test_missing_offset_falls_back_and_logs(self, store, fixed_now, caplog, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_UTC_OFFSET_MINUTES", 0)
        seed(store, [make_habit("run")], entries_for("run", _today(fixed_now), done=[1]))
        store.set_push_recipient(_recipient(offset=None))

        with caplog.at_level(logging.WARNING, logger="habitrat"):
            decisions = run_notifications(fixed_now, dispatcher=RecordingDispatcher())

        assert decisions[0].status == "sent"
        assert any(r.getMessage() == "utc offset missing, using default" for r in caplog.records)


class TestCooldown:
    def _seed_two(self, store, fixed_now):
        today = _today(fixed_now)
        seed(
            store,
            [make_habit("a"), make_habit("b")],
            entries_for("a", today, done=range(1, 6)) + entries_for("b", today, done=range(1, 6)),
        )
        store.set_push_recipient(_recipient())

    def test_same_habit_and_category_not_repeated(self, store, fixed_now):
        self._seed_two(store, fixed_now)
        first = run_notifications(fixed_now, dispatcher=RecordingDispatcher())[0]
        second = run_notifications(fixed_now + timedelta(hours=1), dispatcher=RecordingDispatcher())[0]
        assert first.habit_id == "a"
        assert second.habit_id == "b"

    def test_cooldown_expires(self, store, fixed_now):
        self._seed_two(store, fixed_now)
        run_notifications(fixed_now, dispatcher=RecordingDispatcher())
        later = run_notifications(fixed_now + timedelta(hours=25), dispatcher=RecordingDispatcher())[0]
        # outside the 24h window "a" is eligible again
        assert later.habit_id == "a"

    def test_cooldown_disabled(self, store, fixed_now, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATION_COOLDOWN_HOURS", 0)
        self._seed_two(store, fixed_now)
        run_notifications(fixed_now, dispatcher=RecordingDispatcher())
        again = run_notifications(fixed_now + timedelta(hours=1), dispatcher=RecordingDispatcher())[0]
        assert again.habit_id == "a"


class TestDispatchFailures:
    def _seed(self, store, fixed_now):
        seed(store, [make_habit("run")], entries_for("run", _today(fixed_now), done=[1]))
        store.set_push_recipient(_recipient())

    def test_transport_exception_writes_no_history(self, store, fixed_now):
        self._seed(store, fixed_now)
        decisions = run_notifications(fixed_now, dispatcher=ExplodingDispatcher())
        assert decisions[0].status == "dispatch_failed"
        assert store.get_notification_history("u1") == []
        assert store.list_job_runs("notifications")[0].status == "failed"

    def test_rejected_chunk_writes_no_history(self, store, fixed_now):
        self._seed(store, fixed_now)
        decisions = run_notifications(fixed_now, dispatcher=RecordingDispatcher(accept=False))
        assert decisions[0].status == "dispatch_failed"
        assert store.get_notification_history("u1") == []

    def test_history_row_matches_message(self, store, fixed_now):
        self._seed(store, fixed_now)
        dispatcher = RecordingDispatcher()
        run_notifications(fixed_now, dispatcher=dispatcher)
        history = store.get_notification_history("u1")
        assert len(history) == 1
        assert history[0].sent_at == fixed_now
        assert history[0].body == dispatcher.batches[0][0].body
        assert history[0].notification_type == "basic"

    def test_dry_run_sends_nothing(self, store, fixed_now):
        self._seed(store, fixed_now)
        dispatcher = RecordingDispatcher()
        decisions = run_notifications(fixed_now, dispatcher=dispatcher, dry_run=True)
        assert decisions[0].status == "planned"
        assert dispatcher.batches == []
        assert store.get_notification_history("u1") == []


def test_user_filter(store, fixed_now):
    today = _today(fixed_now)
    for uid in ("u1", "u2"):
        seed(store, [make_habit(f"{uid}-h", uid)], entries_for(f"{uid}-h", today, done=[1], user_id=uid))
        store.set_push_recipient(_recipient(uid))
    decisions = run_notifications(fixed_now, user_ids=["u2"], dispatcher=RecordingDispatcher())
    assert [d.user_id for d in decisions] == ["u2"]
