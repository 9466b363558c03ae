"""
Correlation worker. Lower cadence than the daily job (weekly is typical).
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional

from habitrat.features.correlations.job import run_correlations
from habitrat.workers.common import base_parser, bootstrap, exit_code, parse_date, summarize_statuses


def run(as_of: str, user_ids: Optional[List[str]] = None) -> dict:
    results = run_correlations(date.fromisoformat(as_of), user_ids=user_ids)
    return {"as_of": as_of, "users": len(results), "statuses": summarize_statuses(results)}


def main(argv: Optional[List[str]] = None) -> int:
    parser = base_parser("Recompute directed habit correlations.")
    parser.add_argument(
        "--as-of",
        dest="as_of",
        type=parse_date,
        help="Last day of the window (YYYY-MM-DD). Defaults to today (UTC).",
    )
    args = parser.parse_args(argv)
    bootstrap()

    as_of = args.as_of or datetime.now(timezone.utc).date()
    results = run_correlations(as_of, user_ids=args.user_ids)
    print({"as_of": as_of.isoformat(), "users": len(results), "statuses": summarize_statuses(results)})
    return exit_code(results)


if __name__ == "__main__":
    raise SystemExit(main())
