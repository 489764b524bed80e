import os
from datetime import datetime, time, timedelta

import pytest

from spacedeck.application.study_service import StudyService
from spacedeck.domain.models import Card, CardState, SchedulerConfig
from spacedeck.infrastructure.stores.memory import InMemoryCollectionStore

# 14:30 local time, far from midnight so minute/hour offsets stay on the same day
NOW = int(datetime(2026, 3, 10, 14, 30).timestamp() * 1000)


def _local_midnight(ts_ms: int, days: int = 0) -> int:
    day = datetime.fromtimestamp(ts_ms / 1000).date() + timedelta(days=days)
    return int(datetime.combine(day, time.min).timestamp() * 1000)


@pytest.fixture
def midnight():
    """Expected local midnight `days` after the day of a timestamp."""
    return _local_midnight


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config():
    return SchedulerConfig()


@pytest.fixture
def make_card():
    """Factory for cards with sensible defaults; override any field by keyword."""
    counter = {"n": 0}

    def _make(**overrides) -> Card:
        counter["n"] += 1
        data = {
            "id": f"c{counter['n']}",
            "note_id": f"n{counter['n']}",
            "deck_id": "d1",
            "template_key": "basic_fwd",
            "state": CardState.NEW,
            "due_at": NOW,
            "interval_days": 0,
            "ease": 2.5,
        }
        data.update(overrides)
        return Card(**data)

    return _make


@pytest.fixture
def store():
    return InMemoryCollectionStore()


@pytest.fixture
def clock():
    """Mutable fake clock: set `clock.now` to move time."""

    class FakeClock:
        def __init__(self):
            self.now = NOW

        def __call__(self) -> int:
            return self.now

    return FakeClock()


@pytest.fixture
def service(store, config, clock):
    return StudyService(store=store, config=config, clock=clock)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and collection
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("SPACEDECK_"):
            monkeypatch.delenv(key)
    return home
