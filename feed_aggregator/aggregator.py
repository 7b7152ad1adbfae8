"""Feed aggregator: merges submitted items with a persistent cache.

- renders a JSON Feed with the items added this session and the remaining
  cached items
- caches added items with optional expiry unless an identical item is
  already cached
- cached items that are never submitted again and have no expiry stay in the
  cache forever
- expiry is the earliest time the store may drop an entry; expired entries
  are filtered out here instead of being deleted
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

import structlog

from feed_aggregator.clock import Clock, SystemClock, format_timestamp
from feed_aggregator.comparison import deep_equal
from feed_aggregator.config import AggregatorConfig, ExpiredSubmissionPolicy
from feed_aggregator.errors import (
    ApproximationPolicyMismatchError,
    ConflictingDatePolicyError,
    DuplicateSubmissionError,
    ExpiredSubmissionError,
    StorageError,
    StoreWriteError,
    ValidationError,
)
from feed_aggregator.metrics import metrics
from feed_aggregator.models import (
    DATE_MODIFIED,
    DATE_PUBLISHED,
    CacheEntry,
    FeedInfo,
    Submission,
)
from feed_aggregator.renderer import JsonFeedRenderer
from feed_aggregator.storage.base import CacheStore, WriteOperation

logger = structlog.get_logger(__name__)


@dataclass
class SessionState:
    """Entries known to one aggregator instance.

    Attributes:
        loaded: Whether the cache has been read from the store
        cached: Entries read from the store or flushed to it, by item ID
        pending: Entries accepted this session but not yet flushed, by item ID
        submitted: IDs submitted since the last render, whatever their outcome
    """

    loaded: bool = False
    cached: Dict[str, CacheEntry] = field(default_factory=dict)
    pending: Dict[str, CacheEntry] = field(default_factory=dict)
    submitted: Set[str] = field(default_factory=set)


class FeedAggregator:
    """Stateful JSON Feed backed by a cache store.

    Not safe for concurrent use: await each ``add``/``render`` before
    starting the next one.
    """

    def __init__(
        self,
        store: CacheStore,
        prefix: Sequence[str],
        info: Union[FeedInfo, Mapping[str, Any]],
        clock: Optional[Clock] = None,
        config: Optional[AggregatorConfig] = None,
    ):
        """Create a feed aggregator.

        Args:
            store: Cache store shared with other sessions
            prefix: Key prefix isolating this feed's entries
            info: Feed info
            clock: Source of the current time, defaults to the wall clock
            config: Aggregator configuration
        """
        self.store = store
        self.prefix = tuple(prefix)
        self.info = info if isinstance(info, FeedInfo) else FeedInfo.model_validate(info)
        self.clock = clock or SystemClock()
        self.config = config or AggregatorConfig()
        self.state = SessionState()
        self.logger = logger.bind(prefix="/".join(self.prefix))

        self.logger.info(
            "Creating feed aggregator",
            title=self.info.title,
            expired_submission_policy=self.config.expired_submission_policy.value,
        )

    async def _read(self) -> None:
        """Read cached entries from the store, once per session.

        May include expired entries, run ``_clean`` afterwards.
        """
        if self.state.loaded:
            return

        self.logger.debug("Reading items from cache")

        cached: Dict[str, CacheEntry] = {}
        async for key, entry in self.store.list(self.prefix, self.store.max_batch_size):
            # entries of feeds nested under this prefix
            if len(key) != len(self.prefix) + 1:
                continue
            cached[entry.item_id] = entry

        self.state.cached = cached
        self.state.loaded = True

        self.logger.debug("Read items from cache", count=len(cached))

    def _clean(self, now: datetime) -> None:
        """Drop entries that expired by ``now``, cached and pending alike."""
        cached = {k: e for k, e in self.state.cached.items() if not e.is_expired(now)}
        pending = {k: e for k, e in self.state.pending.items() if not e.is_expired(now)}

        expired_cached = len(self.state.cached) - len(cached)
        expired_pending = len(self.state.pending) - len(pending)
        if not expired_cached and not expired_pending:
            return

        self.logger.debug(
            "Cleaning up expired items", cached=expired_cached, pending=expired_pending
        )

        self.state.cached = cached
        self.state.pending = pending

    async def _flush(self, now: datetime) -> None:
        """Write pending entries to the store and move them to the cached set.

        Raises:
            StoreWriteError: If a chunk still fails after all retries. Pending
                entries are kept so the caller can render again.
        """
        if not self.state.pending:
            return

        self.logger.debug("Writing added items to cache", count=len(self.state.pending))
        start_time = time.time()

        operations = [
            WriteOperation(
                key=self.prefix + (item_id,),
                value=entry,
                ttl=(entry.expire_at - now).total_seconds() if entry.expire_at else None,
            )
            for item_id, entry in self.state.pending.items()
        ]

        chunk_size = self.store.max_batch_size
        for index, start in enumerate(range(0, len(operations), chunk_size)):
            await self._write_chunk(operations[start : start + chunk_size], index)

        metrics.observe_histogram(
            "feed_aggregator_flush_duration_seconds", time.time() - start_time
        )

        self.state.cached.update(self.state.pending)
        self.state.pending = {}

        self.logger.debug("Wrote items to cache", count=len(operations))

    async def _write_chunk(self, chunk: List[WriteOperation], index: int) -> None:
        attempts = self.config.max_write_retries + 1
        for attempt in range(attempts):
            try:
                await self.store.atomic_write(chunk)
            except StorageError as e:
                metrics.increment_counter("feed_aggregator_store_write_failures_total")
                self.logger.warning(
                    "Atomic write failed", chunk=index, attempt=attempt + 1, error=str(e)
                )
                if attempt + 1 >= attempts:
                    raise StoreWriteError(
                        f"Failed to write chunk {index} after {attempts} attempts: {e.message}",
                        details={"prefix": list(self.prefix), "chunk": index, "attempts": attempts},
                    ) from e
                await asyncio.sleep(self.config.retry_delay * (2**attempt))
            else:
                metrics.increment_counter("feed_aggregator_cache_writes_total", amount=len(chunk))
                return

    async def add(self, *submissions: Union[Submission, Mapping[str, Any]]) -> None:
        """Add one or more items to the feed.

        - errors if an item with the same ID was already submitted since the
          last render, even if that submission left the cache unchanged
        - skips or rejects an item whose ``expire_at`` is already past,
          depending on the configured policy
        - errors if ``approximate_date`` is set but the item has its own dates
        - if an item with the same ID is cached
          - errors if ``approximate_date`` differs
          - if identical, keeps the cached item
          - with ``approximate_date``, also keeps the cached item if it only
            differs in the dates stamped by the aggregator
          - if different, replaces the cached item; with ``approximate_date``
            keeps its published date and stamps the modified date
        - otherwise, with ``approximate_date`` stamps the published date

        Submissions are applied one at a time: when one fails, those before
        it stay added.

        Args:
            *submissions: Items with their options

        Raises:
            ValidationError: If a submission breaks one of the rules above
        """
        now = self.clock.now()

        self.logger.debug("Adding items", count=len(submissions), now=format_timestamp(now))

        await self._read()

        self._clean(now)

        for raw in submissions:
            submission = Submission.model_validate(
                raw.model_dump() if isinstance(raw, CacheEntry) else dict(raw)
            )
            outcome = "rejected"
            try:
                outcome = self._merge(submission, now)
            except ExpiredSubmissionError:
                outcome = "expired"
                raise
            finally:
                metrics.increment_counter(
                    "feed_aggregator_submissions_total", {"outcome": outcome}
                )
            self.state.submitted.add(submission.item_id)

    def _merge(self, submission: Submission, now: datetime) -> str:
        """Apply one submission to the session state.

        Returns:
            Outcome of the submission for the submissions counter
        """
        item = submission.item
        item_id = submission.item_id
        log = self.logger.bind(item_id=item_id)

        if item_id in self.state.submitted:
            raise DuplicateSubmissionError(
                f"Item {item_id} already added", details={"item_id": item_id}
            )

        if submission.is_expired(now):
            if self.config.expired_submission_policy is ExpiredSubmissionPolicy.REJECT:
                raise ExpiredSubmissionError(
                    f"Item {item_id} already expired at {format_timestamp(submission.expire_at)}",
                    details={"item_id": item_id},
                )
            log.debug("Skipping expired item", expire_at=format_timestamp(submission.expire_at))
            return "expired"

        if submission.approximate_date and (item.get(DATE_PUBLISHED) or item.get(DATE_MODIFIED)):
            field_name = "published" if item.get(DATE_PUBLISHED) else "modified"
            raise ConflictingDatePolicyError(
                f"Item {item_id} should approximate date but already has {field_name} date",
                details={"item_id": item_id},
            )

        existing = self.state.cached.get(item_id)

        if existing is None:
            if submission.approximate_date:
                log.debug("Approximating published date using current date")
                item[DATE_PUBLISHED] = format_timestamp(now)
            log.debug("Adding")
            outcome = "added"
        else:
            if submission.approximate_date != existing.approximate_date:
                raise ApproximationPolicyMismatchError(
                    f"Item {item_id} should approximate date {submission.approximate_date} "
                    f"but existing has {existing.approximate_date}",
                    details={"item_id": item_id},
                )

            if deep_equal(item, existing.item):
                log.debug("Skipping since existing is identical")
                return "unchanged"

            if submission.approximate_date:
                # the cached item carries the dates stamped earlier
                if deep_equal(item, existing.item, exclude=(DATE_PUBLISHED, DATE_MODIFIED)):
                    log.debug("Skipping since existing is identical apart from stamped dates")
                    return "unchanged"

                if DATE_PUBLISHED in existing.item:
                    item[DATE_PUBLISHED] = existing.item[DATE_PUBLISHED]
                item[DATE_MODIFIED] = format_timestamp(now)
                log.debug("Approximating modified date using current date")

            log.debug("Overwriting")
            del self.state.cached[item_id]
            outcome = "updated"

        self.state.pending[item_id] = CacheEntry(
            item=item,
            expire_at=submission.expire_at,
            approximate_date=submission.approximate_date,
        )
        return outcome

    async def items(self) -> List[Dict[str, Any]]:
        """Flush pending entries and return the merged items.

        Cached items come first in store order, then items added this
        session in the order they were added.

        Raises:
            StoreWriteError: If pending entries could not be written
        """
        now = self.clock.now()

        self.logger.debug("Collecting items", now=format_timestamp(now))

        await self._read()

        self._clean(now)

        await self._flush(now)
        self.state.submitted = set()

        entries = list(self.state.cached.values()) + list(self.state.pending.values())
        metrics.set_gauge("feed_aggregator_cached_items", len(entries))
        return [entry.item for entry in entries]

    async def render(self) -> str:
        """Get the feed as JSON.

        Stores added items in the cache, then renders cached items and added
        items into one JSON Feed document.

        Returns:
            JSON Feed document

        Raises:
            StoreWriteError: If pending entries could not be written
        """
        renderer = JsonFeedRenderer(self.info)
        renderer.add(await self.items())
        return renderer.to_json()
