import random
import time
from datetime import UTC, datetime

import pytest

from lexify.application.scheduler import Scheduler, SchedulerParameters
from lexify.application.word_store import WordStore
from lexify.domain.models import FSRSCard, State, Word
from lexify.infrastructure.persistence.memory import InMemoryWordRepository

FIXED_NOW = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def eastern_time(monkeypatch):
    """Run the test with the local timezone fixed at UTC-5."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "EST5")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def scheduler():
    """Scheduler with default weights and fuzz disabled (deterministic)."""
    return Scheduler(SchedulerParameters(enable_fuzz=False))


@pytest.fixture
def repo():
    return InMemoryWordRepository()


@pytest.fixture
def store(repo, scheduler, now):
    return WordStore(repo, scheduler, clock=lambda: now, rng=random.Random(7))


@pytest.fixture
def make_word(now):
    """Factory for words with a New card (override any card field via kwargs)."""
    counter = iter(range(10_000))

    def _make(text: str, **card_fields) -> Word:
        card_fields.setdefault("due", now)
        card_fields.setdefault("state", State.NEW)
        return Word(
            id=f"word_{next(counter):04d}",
            text=text,
            date_added=now,
            fsrs_card=FSRSCard(**card_fields),
        )

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data files
    monkeypatch.setenv("HOME", str(home))
    for var in ("LEXIFY_AI_BASE_URL", "LEXIFY_AI_API_KEY", "LEXIFY_DATA_FILE"):
        monkeypatch.delenv(var, raising=False)
    return home
