# habitrat/conftest.py
from datetime import date, datetime, timezone

import pytest

from habitrat.core.config import settings
from habitrat.core.metrics import METRICS
from habitrat.features.storage.memory import InMemoryStore
from habitrat.features.storage.store import reset_store, set_store


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    """
    Every test starts on the in-memory store with zeroed metrics.

    DATABASE_URL is cleared so get_store() never reaches for a real database.
    """
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", None)
    reset_store()
    METRICS.reset()
    yield
    reset_store()


@pytest.fixture
def fixed_as_of() -> date:
    # A Monday
    return date(2025, 6, 30)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 6, 30, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryStore:
    """Fresh in-memory store installed as the process-wide store."""
    s = InMemoryStore()
    set_store(s)
    return s
