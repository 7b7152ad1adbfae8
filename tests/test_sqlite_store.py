"""Tests for SQLite cache store implementation."""
from pathlib import Path

import pytest
from conftest import INFO, ITEM1, ITEM2, PREFIX, feed_json

from feed_aggregator.aggregator import FeedAggregator
from feed_aggregator.errors import StorageError
from feed_aggregator.models import CacheEntry
from feed_aggregator.storage.base import WriteOperation
from feed_aggregator.storage.sqlite_store import (
    SQLiteConfig,
    SQLiteStore,
    encode_key,
    encode_prefix,
)


@pytest.fixture
def test_db_path(tmp_path):
    """Fixture providing a temporary database path."""
    return str(tmp_path / "cache" / "test.db")


@pytest.fixture
def sqlite_store(test_db_path, clock):
    """Fixture providing a SQLiteStore instance."""
    store = SQLiteStore(SQLiteConfig(db_path=test_db_path), clock=clock)
    yield store
    store.close()


async def collect(store, prefix, page_size=1000):
    return [(key, entry) async for key, entry in store.list(prefix, page_size)]


def op(*key, ttl=None):
    return WriteOperation(key=key, value=CacheEntry(item={"id": key[-1]}), ttl=ttl)


def test_storage_initialization(test_db_path, sqlite_store):
    """Test storage initialization creates database and table."""
    assert Path(test_db_path).exists()

    tables = {
        row[0]
        for row in sqlite_store._conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert "cache_entries" in tables


def test_encoded_prefix_is_string_prefix_of_key():
    """Test key encoding keeps hierarchical prefixes as string prefixes."""
    assert encode_key(["foo", "bar", "1"]).startswith(encode_prefix(["foo", "bar"]))
    assert not encode_key(["foo", "barbaz", "1"]).startswith(encode_prefix(["foo", "bar"]))
    assert encode_key(["foo"]).startswith(encode_prefix([]))


@pytest.mark.asyncio
async def test_list_by_prefix(sqlite_store):
    """Test listing returns only entries under the prefix."""
    await sqlite_store.atomic_write([op("a", "1"), op("ab", "2"), op("a", "b", "3")])

    keys = [key for key, _ in await collect(sqlite_store, ["a"])]

    assert keys == [("a", "1"), ("a", "b", "3")]


@pytest.mark.asyncio
async def test_list_pages_through_entries(sqlite_store):
    """Test paging returns every entry exactly once."""
    await sqlite_store.atomic_write([op("a", str(i)) for i in range(7)])

    keys = [key[-1] for key, _ in await collect(sqlite_store, ["a"], page_size=3)]

    assert sorted(keys) == [str(i) for i in range(7)]
    assert len(keys) == 7


@pytest.mark.asyncio
async def test_expired_rows_are_hidden_and_purged(sqlite_store, clock):
    """Test expired rows disappear from reads before they are deleted."""
    await sqlite_store.atomic_write([op("a", "1", ttl=30), op("a", "2")])

    clock.advance(seconds=30)

    assert [key for key, _ in await collect(sqlite_store, ["a"])] == [("a", "2")]
    assert sqlite_store._conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0] == 2

    assert sqlite_store.purge_expired() == 1
    assert sqlite_store._conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0] == 1


@pytest.mark.asyncio
async def test_oversized_write_is_rejected(sqlite_store):
    """Test a write larger than the batch limit changes nothing."""
    sqlite_store.max_batch_size = 2

    with pytest.raises(StorageError):
        await sqlite_store.atomic_write([op("a", "1"), op("a", "2"), op("a", "3")])

    assert await collect(sqlite_store, ["a"]) == []


@pytest.mark.asyncio
async def test_failed_write_rolls_back(sqlite_store):
    """Test a failing statement leaves no partial batch behind."""
    sqlite_store._conn.execute(
        """
        CREATE TRIGGER reject_bad BEFORE INSERT ON cache_entries
        WHEN NEW.key LIKE '%"bad"%'
        BEGIN SELECT RAISE(ABORT, 'bad key'); END
        """
    )

    with pytest.raises(StorageError):
        await sqlite_store.atomic_write([op("a", "1"), op("a", "bad")])

    assert await collect(sqlite_store, ["a"]) == []


@pytest.mark.asyncio
async def test_aggregator_survives_restart(test_db_path, clock):
    """Test a feed cached in SQLite is rendered again after reopening the file."""
    store = SQLiteStore(SQLiteConfig(db_path=test_db_path), clock=clock)
    feed = FeedAggregator(store, PREFIX, INFO, clock=clock)
    await feed.add({"item": ITEM1, "approximate_date": True}, {"item": ITEM2})
    expected = await feed.render()
    store.close()

    reopened = SQLiteStore(SQLiteConfig(db_path=test_db_path), clock=clock)
    feed2 = FeedAggregator(reopened, PREFIX, INFO, clock=clock)
    await feed2.add({"item": ITEM1, "approximate_date": True}, {"item": ITEM2})

    assert await feed2.render() == expected
    assert expected == feed_json([{**ITEM1, "date_published": "2024-01-01T00:00:00.000Z"}, ITEM2])
    reopened.close()
