"""
minidb - Embedded key-value store with a replay log and snapshots.

Quick Start:
    from minidb import Classification, Store, Value

    store = Store.load_or_create("/tmp/minidb")
    store.add("C", Value(originator="Dennis Ritchie", year=1972,
                         classification=Classification.STATIC))
    store.save()
"""

__version__ = "0.1.0"

from minidb.core.config import Settings, StoreConfig, get_settings
from minidb.core.types import Classification, Value
from minidb.persistence import (
    LogWriteError,
    RecoveryError,
    SnapshotCorruptionError,
    SnapshotWriteError,
    Store,
    StoreError,
)

__all__ = [
    "__version__",
    "Store",
    "Value",
    "Classification",
    "Settings",
    "StoreConfig",
    "get_settings",
    "StoreError",
    "RecoveryError",
    "SnapshotCorruptionError",
    "LogWriteError",
    "SnapshotWriteError",
]
