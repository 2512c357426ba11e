"""Per-track CSV file lifecycle.

Files live directly in one private directory. Writes are serialised per
filename so a location worker thread and the caller cannot interleave lines.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Iterator

from tracklog.codec import HEADER, PointRecord, decode, decode_line, encode, records
from tracklog.errors import DecodeError, DecodeSkipped, PersistFailed

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
TAIL_SCAN_BYTES = 4096


class TrackFileStore:
    """Append-only track files in a single directory.

    Usage:
        store = TrackFileStore(Path("data/tracks"))
        store.ensure_exists("track_standard.csv")
        store.append("track_standard.csv", record)
        points = store.read_all("track_standard.csv")
    """

    def __init__(self, root: Path):
        self._root = Path(root)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, filename: str) -> Path:
        if not filename or Path(filename).name != filename or filename in (".", ".."):
            raise ValueError(f"Not a bare filename: {filename!r}")
        return self._root / filename

    def _lock(self, filename: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(filename)
            if lock is None:
                lock = self._locks[filename] = threading.Lock()
            return lock

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).exists()

    def ensure_exists(self, filename: str) -> None:
        """Create the file with the v2 header if it is missing. Idempotent."""
        path = self.path_for(filename)
        with self._lock(filename):
            try:
                self._root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PersistFailed(e) from e
            try:
                with open(path, "xb") as f:
                    f.write(HEADER.encode(ENCODING))
            except FileExistsError:
                return
            except OSError as e:
                raise PersistFailed(e) from e
        logger.info("Created track file %s", path)

    def append(self, filename: str, record: PointRecord) -> None:
        """Append one encoded record and flush it to the OS.

        A last line missing its newline is terminated if it holds a record
        and cut off if it is the remnant of an interrupted write.
        """
        self.ensure_exists(filename)
        path = self.path_for(filename)
        data = encode(record).encode(ENCODING)
        with self._lock(filename):
            try:
                with open(path, "rb+") as f:
                    end = f.seek(0, os.SEEK_END)
                    if end > 0:
                        f.seek(-1, os.SEEK_END)
                        if f.read(1) != b"\n":
                            data = self._repair_tail(f, end, filename) + data
                    f.seek(0, os.SEEK_END)
                    f.write(data)
                    f.flush()
            except OSError as e:
                raise PersistFailed(e) from e

    @staticmethod
    def _repair_tail(f, end: int, filename: str) -> bytes:
        """Deal with an unterminated last line.

        Returns bytes that must precede the next record.
        """
        start = max(0, end - TAIL_SCAN_BYTES)
        f.seek(start)
        tail = f.read()
        idx = tail.rfind(b"\n")
        if idx < 0:
            # single-line file (header or data) or an overlong line: keep it
            return b"\n"
        cut = start + idx + 1
        try:
            decode_line(tail[idx + 1:].decode(ENCODING, errors="replace"))
        except DecodeError:
            logger.warning("Dropping truncated line in %s (%d bytes)", filename, end - cut)
            f.truncate(cut)
            return b""
        return b"\n"

    def iter_decoded(self, filename: str) -> Iterator[PointRecord | DecodeSkipped]:
        """Yield records and skipped lines in file order."""
        path = self.path_for(filename)
        try:
            f = open(path, encoding=ENCODING, errors="replace", newline="")
        except FileNotFoundError:
            return
        with f:
            yield from decode(f)

    def read_all(self, filename: str) -> list[PointRecord]:
        """All parseable records in file order; empty if the file is absent."""
        return list(records(self.iter_decoded(filename)))

    def remove(self, filename: str) -> None:
        """Delete a track file. A missing file is not an error."""
        path = self.path_for(filename)
        with self._lock(filename):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistFailed(e) from e
        logger.info("Removed track file %s", path)
