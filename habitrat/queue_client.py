# habitrat/queue_client.py
"""
RQ queue client for triggering the batch jobs from a scheduler or the API.
Jobs run in a worker started with habitrat.workers.worker.
"""
from datetime import date, datetime
from typing import List, Optional

from redis import Redis
from rq import Queue

from habitrat.core.config import settings

QUEUE_NAME = "habitrat"

_queue = None


def get_queue() -> Queue:
    global _queue
    if _queue is None:
        _queue = Queue(QUEUE_NAME, connection=Redis.from_url(settings.REDIS_URL))
    return _queue


def set_queue(queue: Optional[Queue]) -> None:
    """FOR TESTING ONLY."""
    global _queue
    _queue = queue


def enqueue_daily_analytics(as_of: date, user_ids: Optional[List[str]] = None) -> str:
    """
    Enqueue a daily analytics run.

    Returns:
        Job ID
    """
    job = get_queue().enqueue(
        "habitrat.workers.daily_analytics.run",
        as_of.isoformat(),
        user_ids,
        job_timeout="30m",
        result_ttl=86400,  # Keep result for 1 day
    )
    return job.id


def enqueue_correlations(as_of: date, user_ids: Optional[List[str]] = None) -> str:
    job = get_queue().enqueue(
        "habitrat.workers.correlations.run",
        as_of.isoformat(),
        user_ids,
        job_timeout="30m",
        result_ttl=86400,
    )
    return job.id


def enqueue_notifications(now: datetime, user_ids: Optional[List[str]] = None, dry_run: bool = False) -> str:
    job = get_queue().enqueue(
        "habitrat.workers.notifications.run",
        now.isoformat(),
        user_ids,
        dry_run,
        job_timeout="10m",
        result_ttl=3600,  # Keep result for 1 hour
    )
    return job.id
