"""
habitrat/features/storage/store.py

Smart store selection.
- Uses the SQL store if DATABASE_URL is configured and reachable
- Falls back to in-memory otherwise
- Jobs and API are agnostic to implementation
"""

import logging
import os
from typing import Optional

from habitrat.core.config import settings
from habitrat.features.storage.base import AnalyticsStore

logger = logging.getLogger("habitrat")

# Global store instance (lazy initialization)
_store_instance: Optional[AnalyticsStore] = None


def _select_store() -> AnalyticsStore:
    database_url = os.getenv("DATABASE_URL") or settings.DATABASE_URL

    if database_url:
        try:
            from habitrat.core.database import check_connection
            from habitrat.features.storage.sql import SqlStore

            if check_connection():
                return SqlStore()
            logger.warning("[store] database unavailable, falling back to in-memory")
        except Exception as e:
            logger.warning(f"[store] failed to initialize SQL store: {e}; falling back to in-memory")

    from habitrat.features.storage.memory import InMemoryStore

    return InMemoryStore()


def get_store() -> AnalyticsStore:
    """
    Get the singleton store instance.

    This is the primary API that all consumers should use.
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = _select_store()
    return _store_instance


def set_store(store: Optional[AnalyticsStore]) -> None:
    """Install a specific store (tests, CLI --memory)."""
    global _store_instance
    _store_instance = store


def reset_store():
    """
    Reset the store instance.

    FOR TESTING ONLY - forces re-initialization on next get_store() call.
    """
    global _store_instance
    _store_instance = None
