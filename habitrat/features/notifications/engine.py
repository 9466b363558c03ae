"""
habitrat/features/notifications/engine.py

Notification decision engine.

Per push recipient, per run:
1. Skip when focus mode is on or the user's local hour is inside quiet hours
2. Walk the active habits not completed on the user's local "today"
3. Arbitrate a category (first match wins):
   streak > 3 -> streak_protection, consistency > 80 -> identity,
   missed yesterday -> recovery, otherwise basic
4. Drop candidates whose (habit, category) went out inside the cooldown
5. Stop at the first eligible habit: at most one notification per user per run

All messages of the run go to the dispatcher as one batch; history is
appended only for messages whose chunk was accepted.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Sequence, Set, Tuple

from habitrat.core.config import settings
from habitrat.core.errors import PersistenceError, UpstreamReadError
from habitrat.core.jobs import JobRunContext, persist_with_retry, run_units
from habitrat.core.logging import log_event
from habitrat.core.metrics import notifications_sent_total
from habitrat.features.notifications.dispatch import ExpoPushDispatcher, PushDispatcher
from habitrat.features.notifications.templates import render, title_for
from habitrat.features.scoring.log_view import LogView, completion_rate, get_log_entry
from habitrat.features.scoring.streaks import streak_ending
from habitrat.features.storage.base import AnalyticsStore
from habitrat.features.storage.store import get_store
from habitrat.models.notification import (
    CATEGORY_PRIORITY,
    NotificationDecision,
    NotificationHistory,
    NotificationSettings,
    PushMessage,
    PushRecipient,
)

JOB_NAME = "notifications"

STREAK_PROTECTION_MIN = 3  # strictly more than this
IDENTITY_MIN_CONSISTENCY = 80.0  # strictly more than this
CONSISTENCY_WINDOW_DAYS = 30


@dataclass
class _Plan:
    decision: NotificationDecision
    message: Optional[PushMessage] = None
    history: Optional[NotificationHistory] = None


def choose_category(streak: int, consistency: float, missed_yesterday: bool) -> Tuple[str, int]:
    """Fixed-order arbitration. Returns (category, priority)."""
    if streak > STREAK_PROTECTION_MIN:
        category = "streak_protection"
    elif consistency > IDENTITY_MIN_CONSISTENCY:
        category = "identity"
    elif missed_yesterday:
        category = "recovery"
    else:
        category = "basic"
    return category, CATEGORY_PRIORITY[category]


def local_time(now: datetime, utc_offset_minutes: int) -> datetime:
    """Naive wall-clock time for a fixed UTC offset."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now.astimezone(timezone.utc) + timedelta(minutes=utc_offset_minutes)).replace(tzinfo=None)


def in_quiet_hours(hour: int, prefs: NotificationSettings) -> bool:
    """[start, end) in local hours; wraps midnight when start > end; start == end disables."""
    start, end = prefs.quiet_hours_start, prefs.quiet_hours_end
    if start is None or end is None or start == end:
        return False
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def _offset_for(recipient: PushRecipient) -> int:
    if recipient.utc_offset_minutes is not None:
        return recipient.utc_offset_minutes
    log_event(
        "warning",
        "utc offset missing, using default",
        job=JOB_NAME,
        user_id=recipient.user_id,
        extra={"default_offset_minutes": settings.DEFAULT_UTC_OFFSET_MINUTES},
    )
    return settings.DEFAULT_UTC_OFFSET_MINUTES


def _recently_sent(store: AnalyticsStore, user_id: str, now: datetime) -> Set[Tuple[str, str]]:
    hours = settings.NOTIFICATION_COOLDOWN_HOURS
    if hours <= 0:
        return set()
    since = now - timedelta(hours=hours)
    return {(h.habit_id, h.notification_type) for h in store.get_notification_history(user_id, since)}


def plan_for_recipient(
    recipient: PushRecipient,
    now: datetime,
    store: AnalyticsStore,
    rng: Optional[random.Random] = None,
) -> _Plan:
    user_id = recipient.user_id
    prefs = recipient.settings

    if prefs.focus_mode:
        return _Plan(NotificationDecision(user_id=user_id, status="focus_mode"))

    local_now = local_time(now, _offset_for(recipient))
    if in_quiet_hours(local_now.hour, prefs):
        return _Plan(NotificationDecision(user_id=user_id, status="quiet_hours", detail=f"local hour {local_now.hour}"))

    today: date = local_now.date()
    yesterday = today - timedelta(days=1)
    lookback = settings.NOTIFICATION_STREAK_LOOKBACK_DAYS

    try:
        habits = store.get_active_habits(user_id)
        view = LogView(store.get_entries(user_id, None, today - timedelta(days=lookback), today))
        cooling = _recently_sent(store, user_id, now)
    except Exception as e:
        raise UpstreamReadError(f"read failed for user {user_id}: {e}") from e

    for habit in habits:
        if get_log_entry(view, today, habit.id).completed:
            continue

        streak = streak_ending(habit.id, view, yesterday, lookback)
        consistency = completion_rate(view, habit.id, yesterday, CONSISTENCY_WINDOW_DAYS) * 100
        missed_yesterday = not get_log_entry(view, yesterday, habit.id).completed
        category, priority = choose_category(streak, consistency, missed_yesterday)

        if (habit.id, category) in cooling:
            log_event(
                "info",
                "candidate in cooldown",
                job=JOB_NAME,
                user_id=user_id,
                habit_id=habit.id,
                event_type=category,
            )
            continue

        title = title_for(category)
        body = render(category, habit.name, streak, rng)
        log_event(
            "info",
            "notification chosen",
            job=JOB_NAME,
            user_id=user_id,
            habit_id=habit.id,
            event_type=category,
            extra={"priority": priority, "streak": streak, "consistency": round(consistency, 1), "missed_yesterday": missed_yesterday},
        )
        return _Plan(
            decision=NotificationDecision(
                user_id=user_id,
                status="planned",
                habit_id=habit.id,
                category=category,
                priority=priority,
                body=body,
            ),
            message=PushMessage(
                to=recipient.push_token,
                title=title,
                body=body,
                data={"habit_id": habit.id, "category": category},
            ),
            history=NotificationHistory(
                user_id=user_id,
                habit_id=habit.id,
                sent_at=now,
                notification_type=category,
                title=title,
                body=body,
            ),
        )

    return _Plan(NotificationDecision(user_id=user_id, status="nothing_due"))


def _dispatch(dispatcher: PushDispatcher, plans: Sequence[_Plan]) -> List[bool]:
    messages = [p.message for p in plans]
    try:
        accepted = list(dispatcher.send(messages))
    except Exception as e:
        log_event("error", "dispatch failed", job=JOB_NAME, error_code="dispatch_failed", extra={"messages": len(messages), "error": e})
        return [False] * len(messages)
    if len(accepted) != len(messages):
        log_event("error", "dispatcher returned a mismatched report", job=JOB_NAME, error_code="dispatch_failed")
        return [False] * len(messages)
    return accepted


def run_notifications(
    now: datetime,
    user_ids: Optional[Sequence[str]] = None,
    store: Optional[AnalyticsStore] = None,
    dispatcher: Optional[PushDispatcher] = None,
    rng: Optional[random.Random] = None,
    dry_run: bool = False,
) -> List[NotificationDecision]:
    """
    Decide, dispatch and record at most one notification per push recipient.

    Args:
        now: Run timestamp (UTC); also the sent_at of every history row
        user_ids: Restrict the run to these users
        store: Store implementation; defaults to get_store()
        dispatcher: Push transport; defaults to the Expo client
        rng: Template chooser; seed it for deterministic copy
        dry_run: Decide only, dispatch nothing and write no history

    Returns:
        One NotificationDecision per recipient considered
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    store = store or get_store()
    rng = rng or random.Random()

    with JobRunContext(JOB_NAME, now.isoformat(), store) as ctx:
        recipients = store.list_push_recipients()
        if user_ids is not None:
            wanted = set(user_ids)
            recipients = [r for r in recipients if r.user_id in wanted]
        by_user = {r.user_id: r for r in recipients}

        plans = run_units(
            JOB_NAME,
            list(by_user),
            lambda uid: plan_for_recipient(by_user[uid], now, store, rng),
            lambda uid, e: _Plan(NotificationDecision(user_id=uid, status="error", detail=str(e))),
            # one shared rng, so decisions run sequentially
            max_workers=1,
        )

        outgoing = [p for p in plans if p.message is not None]
        if outgoing and not dry_run:
            accepted = _dispatch(dispatcher or ExpoPushDispatcher(), outgoing)
            for plan, ok in zip(outgoing, accepted):
                if not ok:
                    plan.decision = plan.decision.model_copy(update={"status": "dispatch_failed"})
                    continue
                plan.decision = plan.decision.model_copy(update={"status": "sent"})
                notifications_sent_total.inc({"category": plan.decision.category})
                try:
                    persist_with_retry(
                        JOB_NAME,
                        lambda h=plan.history: store.append_notification_history(h),
                        what="notification_history",
                        user_id=plan.decision.user_id,
                        habit_id=plan.decision.habit_id,
                    )
                except PersistenceError as e:
                    log_event("error", "history not written", job=JOB_NAME, user_id=plan.decision.user_id, error_code=e.code)

        decisions = [p.decision for p in plans]
        ctx.finish(decisions)

    return decisions
