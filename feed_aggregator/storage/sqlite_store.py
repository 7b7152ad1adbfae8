"""SQLite cache store for feed aggregator entries."""
import json
import sqlite3
from pathlib import Path
from typing import AsyncIterator, List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel

from feed_aggregator.clock import Clock, SystemClock
from feed_aggregator.errors import StorageError
from feed_aggregator.models import CacheEntry
from feed_aggregator.storage.base import CacheStore, Key, WriteOperation

logger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL
);
CREATE INDEX IF NOT EXISTS idx_cache_entries_expires_at ON cache_entries (expires_at);
"""


class SQLiteConfig(BaseModel):
    """Configuration for SQLite storage."""

    db_path: str


def encode_key(key: Sequence[str]) -> str:
    """Encode a key so that a prefix of parts is a string prefix of the encoding."""
    return json.dumps(list(key))


def encode_prefix(prefix: Sequence[str]) -> str:
    if not prefix:
        return "["
    return json.dumps(list(prefix))[:-1] + ", "


class SQLiteStore(CacheStore):
    """Durable cache store on a single SQLite table.

    Each atomic write is one transaction. Expired rows are hidden from reads
    and physically removed by :meth:`purge_expired`.
    """

    def __init__(self, config: SQLiteConfig, clock: Optional[Clock] = None):
        """Initialize SQLite storage.

        Args:
            config: SQLite configuration
            clock: Clock used to evaluate expiry, defaults to the wall clock
        """
        self.clock = clock or SystemClock()
        self.db_path = config.db_path
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.executescript(SCHEMA)

    def _now(self) -> float:
        return self.clock.now().timestamp()

    async def list(
        self, prefix: Sequence[str], page_size: int
    ) -> AsyncIterator[Tuple[Key, CacheEntry]]:
        encoded_prefix = encode_prefix(prefix)
        last_key = ""
        while True:
            try:
                rows = self._conn.execute(
                    """
                    SELECT key, value FROM cache_entries
                    WHERE substr(key, 1, length(?)) = ?
                      AND key > ?
                      AND (expires_at IS NULL OR expires_at > ?)
                    ORDER BY key
                    LIMIT ?
                    """,
                    (encoded_prefix, encoded_prefix, last_key, self._now(), page_size),
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to list entries: {e}", details={"prefix": list(prefix)})

            for row in rows:
                yield tuple(json.loads(row["key"])), CacheEntry.model_validate_json(row["value"])

            if len(rows) < page_size:
                return
            last_key = rows[-1]["key"]

    async def atomic_write(self, operations: List[WriteOperation]) -> None:
        if len(operations) > self.max_batch_size:
            raise StorageError(
                f"Too many operations in one write: {len(operations)}",
                details={"max_batch_size": self.max_batch_size},
            )

        now = self._now()
        records = [
            (
                encode_key(op.key),
                op.value.model_dump_json(),
                now + op.ttl if op.ttl is not None else None,
            )
            for op in operations
        ]

        try:
            with self._conn:
                self._conn.executemany(
                    "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                    records,
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to commit entries: {e}", details={"count": len(records)})

        logger.debug("Committed atomic write", operations=len(records), db_path=self.db_path)

    def purge_expired(self) -> int:
        """Delete rows whose expiry has passed.

        Returns:
            Number of deleted rows
        """
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
                    (self._now(),),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to purge expired entries: {e}")

        logger.info("Purged expired entries", count=cursor.rowcount, db_path=self.db_path)
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()
