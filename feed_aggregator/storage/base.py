"""Cache store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from feed_aggregator.models import CacheEntry

Key = Tuple[str, ...]

MAX_BATCH_SIZE = 1000


@dataclass
class WriteOperation:
    """One keyed set inside an atomic write.

    Attributes:
        key: Full key, prefix parts followed by the item ID
        value: Entry to store
        ttl: Relative time-to-live in seconds, None to keep forever
    """

    key: Key
    value: CacheEntry
    ttl: Optional[float] = None


class CacheStore(ABC):
    """Key-value store holding cache entries under hierarchical keys.

    Expiry is best-effort: an entry may outlive its TTL for a while but is
    never dropped before it.
    """

    max_batch_size: int = MAX_BATCH_SIZE

    @abstractmethod
    def list(self, prefix: Sequence[str], page_size: int) -> AsyncIterator[Tuple[Key, CacheEntry]]:
        """Iterate over entries under ``prefix`` in key order.

        Args:
            prefix: Key prefix
            page_size: Number of entries fetched per round trip
        """

    @abstractmethod
    async def atomic_write(self, operations: List[WriteOperation]) -> None:
        """Apply all operations or none of them.

        Args:
            operations: Keyed sets, at most ``max_batch_size`` of them

        Raises:
            StorageError: If the write could not be committed
        """

    def close(self) -> None:
        """Release any resources held by the store."""


def has_prefix(key: Key, prefix: Sequence[str]) -> bool:
    return len(key) > len(prefix) and tuple(key[: len(prefix)]) == tuple(prefix)
