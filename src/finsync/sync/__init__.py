"""
Synchronization Package

Keeps the local cache consistent with the remote system of record under polled
incremental fetches, pushed change notifications and local optimistic writes.
"""

from .coalescer import ChangeNotificationCoalescer
from .cursor_store import SyncCursorStore, cursor_key
from .dedup import RequestDeduplicator
from .delta import merge_incremental, replace_collection
from .engine import SyncEngine
from .guard import MutationGuard
from .merge import MergeEngine, SyncResult
from .mutations import LocalMutations, MutationResult, TransferResult
from .refresh import TieredRefreshScheduler
from .registry import EntityHandlers, EntityRegistry, NotificationPolicy, build_registry
from .remote import (
    ChangeChannel,
    ChangeEvent,
    ChannelStatus,
    EventType,
    FileRemote,
    LocalChangeChannel,
    RemoteDataSource,
)
from .timers import DelayedTaskScheduler

__all__ = [
    "ChangeChannel",
    "ChangeEvent",
    "ChangeNotificationCoalescer",
    "ChannelStatus",
    "DelayedTaskScheduler",
    "EntityHandlers",
    "EntityRegistry",
    "EventType",
    "FileRemote",
    "LocalChangeChannel",
    "LocalMutations",
    "MergeEngine",
    "MutationGuard",
    "MutationResult",
    "NotificationPolicy",
    "RemoteDataSource",
    "RequestDeduplicator",
    "SyncCursorStore",
    "SyncEngine",
    "SyncResult",
    "TieredRefreshScheduler",
    "TransferResult",
    "build_registry",
    "cursor_key",
    "merge_incremental",
    "replace_collection",
]
