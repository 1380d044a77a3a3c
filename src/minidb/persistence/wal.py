"""
Replay log for minidb.

Every `Store.add` appends one record here before the in-memory table is
updated. On startup the records are replayed, in file order, on top of the
last snapshot.

Record Format (binary):
======================
    [4 bytes] Magic number (0x4D44424C, "MDBL")
    [4 bytes] Payload length
    [N bytes] Payload (msgpack: [key, value])
    [4 bytes] CRC32 of header + payload

All integers are big-endian. Records are self-delimiting, so the log is read
front to back with no index.

Tail Handling:
=============
A record that fails to decode ends the scan. Everything before it is
returned; the remaining bytes are reported as discarded. This covers a
partially written final record after an unclean shutdown. It does not
attempt to resynchronise past damage in the middle of the log.
"""

from __future__ import annotations

import logging
import os
import struct
import zlib
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import msgpack
from pydantic import ValidationError

from ..core.types import Value
from .errors import LogCorruptionError

logger = logging.getLogger(__name__)


# Constants
LOG_MAGIC = 0x4D44424C  # "MDBL"
HEADER_FORMAT = ">II"  # magic, payload_len
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
CHECKSUM_SIZE = 4


@dataclass
class LogRecord:
    """One logical write: a key and the value stored under it."""
    key: str
    value: Value

    def serialize(self) -> bytes:
        """Frame the record as header + msgpack payload + CRC32."""
        payload_bytes = msgpack.packb(
            [self.key, self.value.to_payload()],
            use_bin_type=True,
        )
        header = struct.pack(HEADER_FORMAT, LOG_MAGIC, len(payload_bytes))
        data = header + payload_bytes
        checksum = zlib.crc32(data) & 0xFFFFFFFF
        return data + struct.pack(">I", checksum)

    @classmethod
    def deserialize(cls, data: bytes | memoryview) -> tuple[LogRecord, int]:
        """
        Decode the record at the start of `data`.

        Pass a memoryview to walk a large buffer without copying the
        remainder for every record.

        Returns (record, bytes_consumed).
        Raises LogCorruptionError if the bytes are short, damaged or malformed.
        """
        if len(data) < HEADER_SIZE:
            raise LogCorruptionError(f"Data too short: {len(data)} bytes")

        magic, payload_len = struct.unpack(HEADER_FORMAT, data[:HEADER_SIZE])
        if magic != LOG_MAGIC:
            raise LogCorruptionError(f"Invalid magic: {hex(magic)}")

        total_size = HEADER_SIZE + payload_len + CHECKSUM_SIZE
        if len(data) < total_size:
            raise LogCorruptionError(
                f"Truncated record: need {total_size} bytes, have {len(data)}"
            )

        body_end = HEADER_SIZE + payload_len
        stored_checksum = struct.unpack(">I", data[body_end:total_size])[0]
        computed_checksum = zlib.crc32(data[:body_end]) & 0xFFFFFFFF
        if computed_checksum != stored_checksum:
            raise LogCorruptionError(
                f"Checksum mismatch: stored={stored_checksum:#010x}, "
                f"computed={computed_checksum:#010x}"
            )

        try:
            key, value_payload = msgpack.unpackb(data[HEADER_SIZE:body_end], raw=False)
            if not isinstance(key, str) or not isinstance(value_payload, dict):
                raise TypeError("payload must be [str, map]")
            value = Value.from_payload(value_payload)
        except (ValueError, TypeError, KeyError, ValidationError, msgpack.UnpackException) as e:
            raise LogCorruptionError(f"Malformed payload: {e}") from e

        return cls(key=key, value=value), total_size


@dataclass
class LogScan:
    """Result of reading a replay log front to back."""
    records: list[LogRecord] = field(default_factory=list)
    valid_bytes: int = 0
    discarded_bytes: int = 0


class ReplayLog:
    """
    Append-only replay log bound to a single file.

    The file handle is opened and closed inside each call; nothing is held
    between calls.

    Usage:
        log = ReplayLog(directory / "replay.log", sync_mode="fsync")
        log.append(LogRecord("C", value))

        for record in log.iter_records():
            table[record.key] = record.value

        log.truncate()
    """

    def __init__(self, path: Path, sync_mode: str = "fsync"):
        self.path = Path(path)
        self.sync_mode = sync_mode

    def exists(self) -> bool:
        return self.path.is_file()

    def size(self) -> int:
        """Size of the log file in bytes, 0 if it does not exist."""
        return self.path.stat().st_size if self.path.exists() else 0

    def append(self, record: LogRecord) -> int:
        """
        Append a record, creating the file if needed.

        Returns the number of bytes written. The record is flushed (and
        synced, depending on sync_mode) before this returns.
        """
        data = record.serialize()
        previous_size = self.size()

        try:
            with open(self.path, "ab") as f:
                f.write(data)
                self._sync(f)
        except OSError:
            self._rollback(previous_size)
            raise

        logger.debug(f"Appended record key={record.key!r} ({len(data)} bytes) to {self.path}")
        return len(data)

    def truncate(self) -> None:
        """Reset the log to empty, creating it if it does not exist."""
        with open(self.path, "wb") as f:
            self._sync(f)
        logger.debug(f"Truncated replay log {self.path}")

    def scan(self) -> LogScan:
        """
        Read every decodable record from the start of the log.

        Raises OSError if the file cannot be read. A decode failure ends the
        scan; it is reported through `discarded_bytes`, not raised.
        """
        with open(self.path, "rb") as f:
            data = f.read()

        view = memoryview(data)
        result = LogScan()
        offset = 0
        while offset < len(data):
            try:
                record, consumed = LogRecord.deserialize(view[offset:])
            except LogCorruptionError as e:
                result.discarded_bytes = len(data) - offset
                logger.warning(
                    f"Replay log {self.path} ends with {result.discarded_bytes} "
                    f"undecodable bytes at offset {offset}: {e}"
                )
                break
            result.records.append(record)
            offset += consumed

        result.valid_bytes = offset
        return result

    def iter_records(self) -> Iterator[LogRecord]:
        """Iterate valid records in file order."""
        yield from self.scan().records

    def truncate_to(self, size: int) -> None:
        """
        Cut the log back to its first `size` bytes.

        Raises OSError if the file cannot be truncated.
        """
        os.truncate(self.path, size)
        logger.warning(f"Truncated replay log {self.path} to {size} bytes")

    def _rollback(self, size: int) -> None:
        """Cut a partially written record off the end of the log."""
        if not self.path.exists() or self.path.stat().st_size <= size:
            return
        try:
            self.truncate_to(size)
        except OSError as e:
            logger.error(f"Failed to roll back partial append to {self.path}: {e}")

    def _sync(self, f) -> None:
        f.flush()
        if self.sync_mode == "fsync":
            os.fsync(f.fileno())
        elif self.sync_mode == "fdatasync":
            os.fdatasync(f.fileno())
