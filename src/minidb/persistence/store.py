"""
Embedded key-value store backed by a replay log and a snapshot.

Directory layout:
    <dir>/replay.log   append-only records since the last snapshot
    <dir>/db.snapshot  full table written by save()

Every add() is appended to the replay log before the in-memory table is
updated. save() writes the whole table to the snapshot and resets the log,
so the next load replays nothing.
"""

from __future__ import annotations

import logging
import struct
import time
from pathlib import Path

from ..core.config import StoreConfig
from ..core.types import Value
from .errors import (
    LogWriteError,
    RecoveryError,
    SnapshotCorruptionError,
    SnapshotWriteError,
)
from .recovery import (
    DB_SNAPSHOT,
    REPLAY_LOG,
    DirectoryState,
    RecoveryResult,
    probe_directory,
)
from .snapshot import Snapshot, SnapshotFile
from .wal import LogRecord, ReplayLog

logger = logging.getLogger(__name__)


class Store:
    """
    Single-process key-value store.

    Not thread-safe, and a directory must not be shared between processes.

    Usage:
        store = Store.load_or_create(Path("/tmp/minidb"))
        store.add("Python", Value(originator="Guido van Rossum", year=1989,
                                  classification=Classification.DYNAMIC))
        store.get("Python")
        store.save()
    """

    def __init__(
        self,
        directory: Path | str,
        config: StoreConfig | None = None,
        logging_enabled: bool = True,
    ):
        self.directory = Path(directory)
        self.config = config or StoreConfig()
        self.log_path = self.directory / REPLAY_LOG
        self.snapshot_path = self.directory / DB_SNAPSHOT
        self._logging_enabled = logging_enabled
        self._data: dict[str, Value] = {}
        self._log = ReplayLog(self.log_path, sync_mode=self.config.sync_mode)
        self._snapshot = SnapshotFile(self.snapshot_path, compress=self.config.compress_snapshot)
        self.recovery: RecoveryResult | None = None

    @property
    def logging_enabled(self) -> bool:
        """Whether add() appends to the replay log. Fixed at construction."""
        return self._logging_enabled

    # -------------------------------------------------------------------------
    # Construction / recovery
    # -------------------------------------------------------------------------

    @classmethod
    def load_or_create(
        cls,
        directory: Path | str,
        config: StoreConfig | None = None,
    ) -> Store:
        """
        Open the store in `directory`.

        If `directory` holds a replay log, load the snapshot (if any) and
        replay the log on top of it. Otherwise create the directory and
        return an empty store.

        Raises:
            RecoveryError: the directory, snapshot or log could not be read
            SnapshotCorruptionError: the snapshot is malformed
        """
        start_time = time.time()
        directory = Path(directory)

        if probe_directory(directory) is DirectoryState.EXISTING:
            store = cls._restore_and_replay(directory, config)
        else:
            store = cls._create(directory, config)

        store.recovery.duration_seconds = time.time() - start_time
        logger.info(str(store.recovery))
        return store

    @classmethod
    def _create(cls, directory: Path, config: StoreConfig | None) -> Store:
        """Create a new, empty store. Files are created on first write."""
        logger.debug(f"Creating new store in {directory}")
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create store directory {directory}: {e}")
            raise RecoveryError(f"Cannot create store directory: {e}", path=directory) from e

        store = cls(directory, config)
        store.recovery = RecoveryResult(mode=DirectoryState.FRESH)
        return store

    @classmethod
    def _restore_and_replay(cls, directory: Path, config: StoreConfig | None) -> Store:
        """Load the snapshot, then replay the log against it."""
        logger.debug(f"Restoring store from {directory}")
        store = cls(directory, config)
        result = RecoveryResult(mode=DirectoryState.EXISTING)

        if store._snapshot.exists():
            try:
                snapshot = store._snapshot.load()
            except SnapshotCorruptionError as e:
                logger.error(f"Corrupt snapshot {store.snapshot_path}: {e}")
                raise SnapshotCorruptionError(str(e), path=store.snapshot_path) from e
            except OSError as e:
                logger.error(f"Cannot read snapshot {store.snapshot_path}: {e}")
                raise RecoveryError(f"Cannot read snapshot: {e}", path=store.snapshot_path) from e

            store._data.update(snapshot.entries)
            result.snapshot_loaded = True
            result.snapshot_entries = len(snapshot.entries)

        try:
            scan = store._log.scan()
        except OSError as e:
            logger.error(f"Cannot read replay log {store.log_path}: {e}")
            raise RecoveryError(f"Cannot read replay log: {e}", path=store.log_path) from e

        for record in scan.records:
            store._apply(record.key, record.value)

        # New appends must follow the last valid record, not the discarded tail.
        if scan.discarded_bytes:
            try:
                store._log.truncate_to(scan.valid_bytes)
            except OSError as e:
                logger.error(f"Cannot discard damaged tail of {store.log_path}: {e}")
                raise RecoveryError(
                    f"Cannot discard damaged tail of replay log: {e}", path=store.log_path
                ) from e

        result.records_replayed = len(scan.records)
        result.discarded_bytes = scan.discarded_bytes
        store.recovery = result
        return store

    # -------------------------------------------------------------------------
    # Mutation / lookup
    # -------------------------------------------------------------------------

    def add(self, key: str, value: Value) -> None:
        """
        Store `value` under `key`, replacing any previous value.

        The record is durable in the replay log before the table changes.

        Raises:
            TypeError: key is not a str or value is not a Value
            LogWriteError: the record could not be appended; the table is
                left unchanged
        """
        if not isinstance(key, str):
            raise TypeError(f"key must be str, got {type(key).__name__}")
        if not isinstance(value, Value):
            raise TypeError(f"value must be Value, got {type(value).__name__}")

        if self._logging_enabled:
            try:
                self._log.append(LogRecord(key=key, value=value))
            except (OSError, ValueError, TypeError, OverflowError, struct.error) as e:
                logger.error(f"Failed to append {key!r} to replay log {self.log_path}: {e}")
                raise LogWriteError(
                    f"Failed to append {key!r} to replay log: {e}", path=self.log_path
                ) from e

        self._apply(key, value)

    def _apply(self, key: str, value: Value) -> None:
        # Replay path: table only, never the log.
        self._data[key] = value

    def get(self, key: str) -> Value | None:
        return self._data.get(key)

    def items(self) -> list[tuple[str, Value]]:
        """Entries sorted by key."""
        return sorted(self._data.items())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return (
            f"Store(directory={str(self.directory)!r}, entries={len(self._data)}, "
            f"logging_enabled={self._logging_enabled})"
        )

    # -------------------------------------------------------------------------
    # Compaction
    # -------------------------------------------------------------------------

    def save(self) -> None:
        """
        Write the full table to the snapshot, then reset the replay log.

        Raises:
            SnapshotWriteError: if the snapshot write fails before the
                rename, the previous snapshot and the log are untouched. If
                it fails after the rename (directory fsync) or the log reset
                fails, the new snapshot is in place and the old log replays
                over it to the same state.
        """
        snapshot = Snapshot(entries=dict(self._data), directory=str(self.directory))

        try:
            self._snapshot.write(snapshot)
        except (OSError, ValueError, TypeError, OverflowError, struct.error) as e:
            logger.error(f"Failed to write snapshot {self.snapshot_path}: {e}")
            raise SnapshotWriteError(
                f"Failed to write snapshot: {e}", path=self.snapshot_path
            ) from e

        try:
            self._log.truncate()
        except OSError as e:
            logger.error(
                f"Snapshot written but replay log {self.log_path} was not reset: {e}"
            )
            raise SnapshotWriteError(
                f"Failed to reset replay log: {e}", path=self.log_path
            ) from e

    def file_sizes(self) -> dict[str, int]:
        """On-disk size of the replay log and snapshot, 0 if absent."""
        return {
            REPLAY_LOG: self._log.size(),
            DB_SNAPSHOT: self.snapshot_path.stat().st_size if self._snapshot.exists() else 0,
        }
