import json
from datetime import datetime, timezone

import pytest
import structlog

from feed_aggregator.aggregator import FeedAggregator
from feed_aggregator.clock import FixedClock
from feed_aggregator.config import AggregatorConfig
from feed_aggregator.errors import StorageError
from feed_aggregator.models import JSON_FEED_VERSION
from feed_aggregator.storage.memory_store import MemoryStore

PREFIX = ["foo", "bar"]

INFO = {
    "title": "Example Feed",
    "home_page_url": "https://example.org",
    "feed_url": "https://example.org/feed.json",
}

ITEM1 = {
    "id": "1",
    "content_html": "<p>foo</p>",
    "url": "https://example.org/foo",
}

ITEM2 = {
    "id": "2",
    "content_text": "bar",
    "url": "https://example.org/bar",
}

ITEM3 = {
    "id": "3",
    "content_html": "<p>foo</p>",
    "content_text": "bar",
    "url": "https://example.org/foobar",
}

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def feed_json(items, info=INFO):
    """Serialize a feed document the way the renderer does."""
    return json.dumps(
        {"version": JSON_FEED_VERSION, **info, "items": list(items)},
        ensure_ascii=False,
        separators=(",", ":"),
    )


class RecordingStore(MemoryStore):
    """Memory store that remembers every atomic write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = []

    async def atomic_write(self, operations):
        await super().atomic_write(operations)
        self.writes.append(list(operations))

    @property
    def written_keys(self):
        return [op.key for batch in self.writes for op in batch]


class FlakyStore(RecordingStore):
    """Memory store whose first ``failures`` writes fail."""

    def __init__(self, *args, failures=1, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = failures
        self.attempts = 0

    async def atomic_write(self, operations):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("Store unavailable")
        await super().atomic_write(operations)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def clock():
    """Fixture providing a clock frozen at the start of 2024."""
    return FixedClock(START)


@pytest.fixture
def store(clock):
    """Fixture providing an in-memory store sharing the test clock."""
    return RecordingStore(clock=clock)


@pytest.fixture
def config():
    """Fixture providing a configuration without retry delays."""
    return AggregatorConfig(retry_delay=0)


@pytest.fixture
def make_aggregator(store, clock, config):
    """Fixture providing a factory for aggregators over the shared store."""

    def factory(**kwargs):
        kwargs.setdefault("store", store)
        kwargs.setdefault("prefix", PREFIX)
        kwargs.setdefault("info", INFO)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("config", config)
        return FeedAggregator(**kwargs)

    return factory
