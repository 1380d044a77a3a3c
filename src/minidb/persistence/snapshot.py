"""
Snapshot files for minidb.

A snapshot is the full table at one point in time. Writing one lets the
replay log be reset to empty, so recovery after it replays nothing.

File Format:
===========
    [4 bytes]  Magic b"MDBS"
    [2 bytes]  Format version
    [8 bytes]  Body length N
    [N bytes]  Body (msgpack map: version, created_at, directory, entries)
    [32 bytes] SHA-256 digest of body

The whole file may be gzip-compressed; readers detect this from the gzip
magic bytes.

Atomic write using temp file + rename pattern:
1. Write to db.snapshot.tmp
2. fsync
3. Rename over db.snapshot
4. fsync the directory
"""

from __future__ import annotations

import gzip
import hashlib
import hmac
import logging
import os
import struct
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import msgpack
from pydantic import ValidationError

from ..core.types import Value
from .errors import SnapshotCorruptionError

logger = logging.getLogger(__name__)


SNAPSHOT_MAGIC = b"MDBS"
SNAPSHOT_VERSION = 1
PREFIX_FORMAT = ">4sHQ"  # magic, version, body_len
PREFIX_SIZE = struct.calcsize(PREFIX_FORMAT)
DIGEST_SIZE = 32
GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class Snapshot:
    """
    Full store state at one point in time.

    `directory` records where the snapshot was taken; it is informational
    and never used to relocate a store.
    """
    entries: dict[str, Value] = field(default_factory=dict)
    directory: str = ""
    created_at: float = field(default_factory=time.time)
    version: int = SNAPSHOT_VERSION

    def serialize(self, compress: bool = False) -> bytes:
        """Serialize snapshot to bytes with a trailing SHA-256 digest."""
        body = msgpack.packb(
            {
                "version": self.version,
                "created_at": self.created_at,
                "directory": self.directory,
                "entries": {key: value.to_payload() for key, value in self.entries.items()},
            },
            use_bin_type=True,
        )
        digest = hashlib.sha256(body).digest()
        data = struct.pack(PREFIX_FORMAT, SNAPSHOT_MAGIC, self.version, len(body)) + body + digest

        if compress:
            data = gzip.compress(data, compresslevel=6)

        return data

    @classmethod
    def deserialize(cls, data: bytes) -> Snapshot:
        """
        Deserialize and verify a snapshot.

        Raises SnapshotCorruptionError on any format, digest or content problem.
        """
        if data[:2] == GZIP_MAGIC:
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError) as e:
                raise SnapshotCorruptionError(f"Failed to decompress snapshot: {e}") from e

        if len(data) < PREFIX_SIZE + DIGEST_SIZE:
            raise SnapshotCorruptionError(f"Snapshot too short: {len(data)} bytes")

        magic, version, body_len = struct.unpack(PREFIX_FORMAT, data[:PREFIX_SIZE])
        if magic != SNAPSHOT_MAGIC:
            raise SnapshotCorruptionError(f"Invalid snapshot magic: {magic!r}")
        if version != SNAPSHOT_VERSION:
            raise SnapshotCorruptionError(f"Unsupported snapshot version: {version}")

        expected_size = PREFIX_SIZE + body_len + DIGEST_SIZE
        if len(data) != expected_size:
            raise SnapshotCorruptionError(
                f"Snapshot size mismatch: expected {expected_size} bytes, got {len(data)}"
            )

        body = data[PREFIX_SIZE:PREFIX_SIZE + body_len]
        stored_digest = data[PREFIX_SIZE + body_len:]
        if not hmac.compare_digest(hashlib.sha256(body).digest(), stored_digest):
            raise SnapshotCorruptionError(
                "Snapshot digest mismatch. Data may be corrupted."
            )

        try:
            state = msgpack.unpackb(body, raw=False)
            entries = {
                key: Value.from_payload(payload)
                for key, payload in state["entries"].items()
            }
            return cls(
                entries=entries,
                directory=state.get("directory", ""),
                created_at=state["created_at"],
                version=state["version"],
            )
        except (ValueError, TypeError, KeyError, AttributeError,
                ValidationError, msgpack.UnpackException) as e:
            raise SnapshotCorruptionError(f"Failed to decode snapshot body: {e}") from e


class SnapshotFile:
    """Reads and atomically replaces the snapshot file of one store."""

    def __init__(self, path: Path, compress: bool = False):
        self.path = Path(path)
        self.compress = compress

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Snapshot:
        """
        Load and verify the snapshot.

        Raises OSError if the file cannot be read and
        SnapshotCorruptionError if it cannot be decoded.
        """
        data = self.path.read_bytes()
        snapshot = Snapshot.deserialize(data)
        logger.info(
            f"Loaded snapshot {self.path}: {len(snapshot.entries)} entries, "
            f"version={snapshot.version}"
        )
        return snapshot

    def write(self, snapshot: Snapshot) -> int:
        """
        Write snapshot atomically, replacing any previous one.

        Returns the number of bytes written. A failure before the rename
        leaves the previous snapshot in place; a failure syncing the
        directory afterwards is raised with the new snapshot already in place.
        """
        start_time = time.time()
        data = snapshot.serialize(compress=self.compress)
        self._atomic_write(data)

        elapsed = time.time() - start_time
        logger.info(
            f"Snapshot written: entries={len(snapshot.entries)}, size={len(data)}, "
            f"time={elapsed:.3f}s"
        )
        return len(data)

    def _atomic_write(self, data: bytes) -> None:
        """Write data atomically using temp file + rename."""
        tmp_path = self.tmp_path

        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())

            # Atomic rename
            os.replace(tmp_path, self.path)

            # Sync directory to ensure rename is durable
            dir_fd = os.open(str(self.path.parent), os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)

        except Exception:
            # Clean up temp file on failure
            if tmp_path.exists():
                tmp_path.unlink()
            raise
