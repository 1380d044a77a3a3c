"""
Exceptions raised by the minidb persistence layer.
"""

from __future__ import annotations

from pathlib import Path


class StoreError(Exception):
    """Base exception for store failures.

    Attributes:
        path: File or directory involved in the failure, if known
    """

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path else None


class RecoveryError(StoreError):
    """Store could not be loaded; it must not be used."""


class SnapshotCorruptionError(RecoveryError):
    """Snapshot file is malformed or fails its digest check."""


class LogWriteError(StoreError):
    """A record could not be appended to the replay log."""


class SnapshotWriteError(StoreError):
    """Snapshot could not be written or the log could not be reset."""


class LogCorruptionError(Exception):
    """Raised when replay log bytes do not decode to a valid record."""
