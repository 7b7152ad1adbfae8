"""
Cache stores for persisting aggregated feed entries.
"""
from feed_aggregator.storage.base import CacheStore, Key, WriteOperation
from feed_aggregator.storage.memory_store import MemoryStore
from feed_aggregator.storage.sqlite_store import SQLiteConfig, SQLiteStore

__all__ = ["CacheStore", "Key", "MemoryStore", "SQLiteConfig", "SQLiteStore", "WriteOperation"]
