"""Argument parsing and result summaries shared by the job CLIs."""
from __future__ import annotations

import argparse
from collections import Counter
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from dotenv import load_dotenv

from habitrat.core.config import settings
from habitrat.core.logging import configure_logging


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def parse_datetime(value: str) -> datetime:
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an ISO timestamp, got {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--user-id",
        dest="user_ids",
        action="append",
        help="Restrict the run to this user (repeatable).",
    )
    return parser


def bootstrap() -> None:
    load_dotenv()
    configure_logging(settings.ENV)


def summarize_statuses(results: Iterable) -> dict:
    counts = Counter(r.status for r in results)
    return dict(sorted(counts.items()))


def exit_code(results: Iterable, failing: Optional[set] = None) -> int:
    failing = failing or {"error"}
    return 1 if any(r.status in failing for r in results) else 0
