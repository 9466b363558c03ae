"""
Notification worker. Hourly is typical; the scheduler must not overlap runs.
"""
from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import List, Optional

from habitrat.features.notifications.engine import run_notifications
from habitrat.workers.common import base_parser, bootstrap, exit_code, parse_datetime, summarize_statuses


def run(now: str, user_ids: Optional[List[str]] = None, dry_run: bool = False) -> dict:
    decisions = run_notifications(datetime.fromisoformat(now), user_ids=user_ids, dry_run=dry_run)
    return {"now": now, "users": len(decisions), "statuses": summarize_statuses(decisions)}


def main(argv: Optional[List[str]] = None) -> int:
    parser = base_parser("Decide and dispatch motivational push notifications.")
    parser.add_argument("--now", dest="now", type=parse_datetime, help="Run timestamp (ISO). Defaults to the current time.")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Decide only; send nothing, write no history.")
    parser.add_argument("--seed", dest="seed", type=int, help="Seed the template chooser.")
    args = parser.parse_args(argv)
    bootstrap()

    now = args.now or datetime.now(timezone.utc)
    rng = random.Random(args.seed) if args.seed is not None else None
    decisions = run_notifications(now, user_ids=args.user_ids, rng=rng, dry_run=args.dry_run)
    print({"now": now.isoformat(), "users": len(decisions), "statuses": summarize_statuses(decisions)})
    return exit_code(decisions)


if __name__ == "__main__":
    raise SystemExit(main())
