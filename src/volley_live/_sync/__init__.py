# Area: Sync
"""
Broadcast synchronization - mirrors the scorer's match to remote viewers.

This package handles:
- Throttled, ordered snapshot pushes to the shared broadcast store
- The viewer interactions feed (presence, cheers, alerts)
- Store interfaces and in-memory reference stores
"""

from .throttle import CoalescingThrottle
from .snapshot import build_snapshot, MAX_HISTORY_ENTRIES
from .stores import (
    BroadcastStore,
    InteractionsStore,
    InMemoryBroadcastStore,
    InMemoryInteractionsStore,
    StartResult,
    UpdateResult,
)
from .publisher import BroadcastPublisher
from .ingestor import InteractionIngestor, InteractionsDocument, ViewerAlert, ViewerPresence

__all__ = [
    "CoalescingThrottle",
    "build_snapshot",
    "MAX_HISTORY_ENTRIES",
    "BroadcastStore",
    "InteractionsStore",
    "InMemoryBroadcastStore",
    "InMemoryInteractionsStore",
    "StartResult",
    "UpdateResult",
    "BroadcastPublisher",
    "InteractionIngestor",
    "InteractionsDocument",
    "ViewerAlert",
    "ViewerPresence",
]
