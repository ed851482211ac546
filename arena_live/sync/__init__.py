"""Client-side synchronization of pulled snapshots and pushed envelopes.

This package provides:
- Snapshot caching (pull on start, fixed-interval polling, stale-on-error)
- Rolling balance history (throttled, capacity-bounded)
- Leaderboard synchronization (validated entries, staleness-triggered ROI refetch)
- Reasoning and news feeds
"""

from .feeds import NewsFeed, ReasoningFeed
from .leaderboard import LeaderboardSynchronizer, parse_roi_history, validate_entries
from .rolling import RollingAggregator
from .snapshot_cache import SnapshotCache, describe_error

__all__ = [
    "LeaderboardSynchronizer",
    "NewsFeed",
    "ReasoningFeed",
    "RollingAggregator",
    "SnapshotCache",
    "describe_error",
    "parse_roi_history",
    "validate_entries",
]
