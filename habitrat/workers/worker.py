# Run this with: rq worker -u redis://localhost:6379 habitrat
# or: habitrat-worker (which will spin a small worker loop for dev)
import logging

from redis import Redis
from rq import Queue, Worker

from habitrat.core.config import settings
from habitrat.queue_client import QUEUE_NAME
from habitrat.workers.common import bootstrap

logger = logging.getLogger("habitrat")

listen = [QUEUE_NAME]


def main() -> int:
    bootstrap()
    conn = Redis.from_url(settings.REDIS_URL)
    worker = Worker([Queue(name, connection=conn) for name in listen], connection=conn)
    logger.info("Starting RQ worker (interactive).")
    worker.work()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
