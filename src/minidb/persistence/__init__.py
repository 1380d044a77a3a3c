"""
minidb Persistence Layer

Durability for the store through:
- Replay log: every write is appended before it is applied
- Snapshot: full table, written on save(), resets the log
- Recovery: snapshot + log replay on startup

Recovery Protocol:
=================

    load_or_create(dir)
           │
           ▼
    replay.log present?
           │
      ┌────┴─────┐
      │          │
      ▼          ▼
    FRESH     EXISTING
      │          │
      ▼          ▼
   mkdir -p   Load db.snapshot (if any)
      │          │
      │          ▼
      │       Replay replay.log until EOF
      │       or first undecodable record
      │          │
      └────┬─────┘
           ▼
    Start serving
"""

from .errors import (
    LogCorruptionError,
    LogWriteError,
    RecoveryError,
    SnapshotCorruptionError,
    SnapshotWriteError,
    StoreError,
)
from .recovery import (
    DB_SNAPSHOT,
    REPLAY_LOG,
    DirectoryState,
    RecoveryResult,
    probe_directory,
)
from .snapshot import Snapshot, SnapshotFile
from .store import Store
from .wal import LogRecord, LogScan, ReplayLog

__all__ = [
    # Store
    "Store",
    # Replay log
    "ReplayLog",
    "LogRecord",
    "LogScan",
    # Snapshot
    "Snapshot",
    "SnapshotFile",
    # Recovery
    "DirectoryState",
    "RecoveryResult",
    "probe_directory",
    "REPLAY_LOG",
    "DB_SNAPSHOT",
    # Errors
    "StoreError",
    "RecoveryError",
    "SnapshotCorruptionError",
    "LogWriteError",
    "SnapshotWriteError",
    "LogCorruptionError",
]
