"""Snapshot synchronization over a shared key-value store."""

from __future__ import annotations

from .events import PreferenceChanged, SnapshotChanged, SyncEvent, translate_changes
from .layer import Subscription, SynchronizationLayer
from .store import BaseStore, MemoryStore, SQLiteStore, create_store

__all__ = [
    "SynchronizationLayer",
    "Subscription",
    "SnapshotChanged",
    "PreferenceChanged",
    "SyncEvent",
    "translate_changes",
    "BaseStore",
    "MemoryStore",
    "SQLiteStore",
    "create_store",
]
