"""
Daily analytics worker.

Run from cron once a day, or enqueue through habitrat.queue_client.

Without --as-of the run scores "yesterday" for every selected user, where
yesterday is taken at --utc-offset-minutes (UTC when omitted). Users whose
local day differs from that clock are scored on the same calendar date;
schedule one run per region with --user-id and an offset to follow local days.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from habitrat.features.analytics.daily_job import run_daily_analytics
from habitrat.workers.common import base_parser, bootstrap, exit_code, parse_date, summarize_statuses


def default_as_of(now: Optional[datetime] = None, utc_offset_minutes: int = 0) -> date:
    """The calendar day before `now` at the given UTC offset."""
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))
    return local.date() - timedelta(days=1)


def run(as_of: str, user_ids: Optional[List[str]] = None) -> dict:
    """Queue entry point: plain, picklable arguments and result."""
    results = run_daily_analytics(date.fromisoformat(as_of), user_ids=user_ids)
    return {"as_of": as_of, "users": len(results), "statuses": summarize_statuses(results)}


def main(argv: Optional[List[str]] = None) -> int:
    parser = base_parser("Compute and persist daily habit analytics.")
    parser.add_argument(
        "--as-of",
        dest="as_of",
        type=parse_date,
        help="Analytics date (YYYY-MM-DD). Defaults to yesterday at --utc-offset-minutes, "
        "one date for every selected user.",
    )
    parser.add_argument(
        "--utc-offset-minutes",
        dest="utc_offset_minutes",
        type=int,
        default=0,
        help="Clock used for the default --as-of, in minutes east of UTC (default 0).",
    )
    args = parser.parse_args(argv)
    bootstrap()

    as_of = args.as_of or default_as_of(utc_offset_minutes=args.utc_offset_minutes)
    results = run_daily_analytics(as_of, user_ids=args.user_ids)
    print({"as_of": as_of.isoformat(), "users": len(results), "statuses": summarize_statuses(results)})
    return exit_code(results)


if __name__ == "__main__":
    raise SystemExit(main())
