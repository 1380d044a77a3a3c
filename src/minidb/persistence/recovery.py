"""
Startup recovery helpers for minidb.

A store directory is recognised by its replay log, even when the log is
empty. Anything else is treated as a fresh location.

Recovery Protocol:
=================

    load_or_create(dir)
           │
           ▼
    ┌──────────────────┐
    │  probe_directory  │
    └────────┬─────────┘
             │
      ┌──────┴──────┐
      │             │
      ▼             ▼
    FRESH        EXISTING
      │             │
      ▼             ▼
   mkdir -p      Load snapshot (if any)
      │             │
      │             ▼
      │          Replay log (logging suppressed)
      │             │
      └──────┬──────┘
             │
             ▼
    Store ready, logging enabled
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path

logger = logging.getLogger(__name__)


REPLAY_LOG = "replay.log"
DB_SNAPSHOT = "db.snapshot"


class DirectoryState(Enum):
    """What `probe_directory` found at a store location."""
    FRESH = auto()  # No replay log: create an empty store
    EXISTING = auto()  # Replay log present: restore and replay


def probe_directory(directory: Path) -> DirectoryState:
    """Classify `directory` as FRESH or EXISTING."""
    directory = Path(directory)
    if directory.is_dir() and (directory / REPLAY_LOG).is_file():
        state = DirectoryState.EXISTING
    else:
        state = DirectoryState.FRESH
    logger.debug(f"Probed {directory}: {state.name}")
    return state


@dataclass
class RecoveryResult:
    """Outcome of loading a store."""
    mode: DirectoryState
    snapshot_loaded: bool = False
    snapshot_entries: int = 0
    records_replayed: int = 0
    discarded_bytes: int = 0
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        return (
            f"Recovery ({self.mode.name}): "
            f"snapshot={'yes' if self.snapshot_loaded else 'no'} "
            f"({self.snapshot_entries} entries), "
            f"replayed={self.records_replayed}, "
            f"discarded_bytes={self.discarded_bytes}, "
            f"duration={self.duration_seconds:.3f}s"
        )
