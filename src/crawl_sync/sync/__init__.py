"""Job-state synchronization engine."""

from .aggregate import aggregate, AggregateTracker
from .normalizer import normalize, parse_duration_ms
from .store import JobStore
from .stream import ConnectionState, StreamConnectionManager
from .session import CrawlSyncSession

__all__ = [
    "aggregate",
    "AggregateTracker",
    "normalize",
    "parse_duration_ms",
    "JobStore",
    "ConnectionState",
    "StreamConnectionManager",
    "CrawlSyncSession",
]
