"""Feed aggregator module."""

from .aggregator import FeedAggregator, SessionState
from .clock import FixedClock, SystemClock
from .config import AggregatorConfig, ExpiredSubmissionPolicy
from .models import CacheEntry, FeedInfo, Submission
from .storage import CacheStore, MemoryStore, SQLiteConfig, SQLiteStore, WriteOperation

__version__ = "1.0.0"

__all__ = [
    "AggregatorConfig",
    "CacheEntry",
    "CacheStore",
    "ExpiredSubmissionPolicy",
    "FeedAggregator",
    "FeedInfo",
    "FixedClock",
    "MemoryStore",
    "SQLiteConfig",
    "SQLiteStore",
    "SessionState",
    "Submission",
    "SystemClock",
    "WriteOperation",
]
