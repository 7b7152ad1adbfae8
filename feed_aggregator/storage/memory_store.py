"""In-process cache store with per-key expiry."""

import math
from typing import AsyncIterator, List, Optional, Sequence, Tuple

import structlog
from cachetools import TLRUCache

from feed_aggregator.clock import Clock, SystemClock
from feed_aggregator.errors import StorageError
from feed_aggregator.models import CacheEntry
from feed_aggregator.storage.base import CacheStore, Key, WriteOperation, has_prefix

logger = structlog.get_logger(__name__)


def _time_to_use(key, value, now):
    _, ttl = value
    return now + ttl if ttl is not None else math.inf


class MemoryStore(CacheStore):
    """Cache store backed by a ``TLRUCache``.

    Entries are serialized on write so that readers get fresh copies, the
    same as a remote store would hand out.
    """

    def __init__(self, clock: Optional[Clock] = None, maxsize: float = math.inf):
        """Initialize the memory store.

        Args:
            clock: Clock driving expiry, defaults to the wall clock
            maxsize: Maximum number of entries held
        """
        self.clock = clock or SystemClock()
        self._cache = TLRUCache(
            maxsize=maxsize,
            ttu=_time_to_use,
            timer=lambda: self.clock.now().timestamp(),
        )

    async def list(
        self, prefix: Sequence[str], page_size: int
    ) -> AsyncIterator[Tuple[Key, CacheEntry]]:
        self._cache.expire()
        keys = sorted(key for key in list(self._cache.keys()) if has_prefix(key, prefix))
        for start in range(0, len(keys), page_size):
            for key in keys[start : start + page_size]:
                value = self._cache.get(key)
                if value is None:
                    continue
                payload, _ = value
                yield key, CacheEntry.model_validate_json(payload)

    async def atomic_write(self, operations: List[WriteOperation]) -> None:
        if len(operations) > self.max_batch_size:
            raise StorageError(
                f"Too many operations in one write: {len(operations)}",
                details={"max_batch_size": self.max_batch_size},
            )

        # serialize everything first so a bad value leaves the cache untouched
        staged = []
        for op in operations:
            if op.ttl is not None and op.ttl <= 0:
                raise StorageError("TTL must be positive", details={"key": op.key})
            staged.append((tuple(op.key), (op.value.model_dump_json(), op.ttl)))

        for key, value in staged:
            self._cache[key] = value

        logger.debug("Committed atomic write", operations=len(staged))

    def __len__(self) -> int:
        return len(self._cache)
