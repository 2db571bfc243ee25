from datetime import datetime, timezone

import pytest

from whosthat.config import Settings
from whosthat.main import create_app
from whosthat.resolver import Item
from whosthat.settings_store import MemorySettingsStore

# 2024-01-01 00:00 UTC starts bucket 946704 of a 30 minute cycle
CYCLE_START = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
CYCLE_START_BUCKET = 946704


class StubResolver:
    """Resolver double that records lookups."""

    def __init__(self, name="Pikachu", error=None):
        self.name = name
        self.error = error
        self.calls = []

    async def resolve(self, item_id, style="modern"):
        self.calls.append((item_id, style))
        if self.error is not None:
            raise self.error
        return Item(id=item_id, name=self.name, image_url=f"https://img.test/{item_id}.png?size=l&fmt=png")


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def settings(tmp_path):
    return Settings(SETTINGS_FILE=str(tmp_path / "settings.json"), PREFETCH_ENABLED=False)


@pytest.fixture
def store():
    return MemorySettingsStore({"timezone": "UTC", "cycle_minutes": 30})


@pytest.fixture
def resolver():
    return StubResolver()


@pytest.fixture
def clock():
    return FixedClock(CYCLE_START.replace(minute=10))


@pytest.fixture
def app(settings, store, resolver, clock):
    return create_app(settings=settings, store=store, resolver=resolver, clock=clock)
