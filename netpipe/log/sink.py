"""
Log destinations.

Sinks are only touched by the writer's consumer thread, so they hold no locks.
"""

import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import BinaryIO, Optional, TextIO, Tuple

from ..common.constants import LOG_FILE_SUFFIX
from ..common.utils import date_stamp, parse_date_stamp
from .record import LogRecord


def report_error(message: str) -> None:
    """Surface a pipeline failure that cannot reach the logging caller."""
    print(f"netpipe.log: {message}", file=sys.stderr, flush=True)


class StreamSink:
    """Writes lines to a text stream such as sys.stdout."""

    def __init__(self, stream: TextIO):
        self._stream = stream

    def write(self, record: LogRecord, line: str) -> None:
        self._stream.write(line + "\n")

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        # The stream belongs to the process, only flush it
        self.flush()


class FileSink:
    """
    Writes lines to <prefix>_<YYYYMMDD>.log in a directory.

    A new file is opened when a record's date differs from the open file's
    date, or when rotation_bytes is set and the record would push the open
    file past it; size rollovers are named <prefix>_<YYYYMMDD>_NN.log. After
    each rotation, files older than retention_days are deleted
    (0 keeps everything).
    """

    def __init__(
        self,
        directory: str,
        prefix: str = "",
        retention_days: int = 0,
        rotation_bytes: Optional[int] = None,
    ):
        self.directory = Path(directory or ".")
        self.prefix = prefix
        self.retention_days = retention_days
        self.rotation_bytes = rotation_bytes

        self._file: Optional[BinaryIO] = None
        self._path: Optional[Path] = None
        self._stamp: Optional[str] = None
        self._index = 0
        self._size = 0

        head = re.escape(f"{prefix}_") if prefix else ""
        self._pattern = re.compile(
            rf"^{head}(\d{{8}})(?:_(\d{{2,}}))?{re.escape(LOG_FILE_SUFFIX)}$"
        )

    @property
    def path(self) -> Optional[Path]:
        """The active file, or None if nothing has been written yet."""
        return self._path

    def file_path(self, stamp: str, index: int = 0) -> Path:
        name = f"{self.prefix}_{stamp}" if self.prefix else stamp
        if index > 0:
            name += f"_{index:02d}"
        return self.directory / f"{name}{LOG_FILE_SUFFIX}"

    def write(self, record: LogRecord, line: str) -> None:
        """
        Append one line, rotating first if needed.

        Raises:
            OSError: If the file cannot be opened or written
        """
        data = (line + "\n").encode("utf-8")
        stamp = date_stamp(record.timestamp)

        if self._file is None or stamp != self._stamp:
            self._rotate(stamp, None, len(data), record.timestamp)
        elif self._would_overflow(self._size, len(data)):
            self._rotate(stamp, self._index + 1, len(data), record.timestamp)

        self._file.write(data)
        self._size += len(data)

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        file, self._file = self._file, None
        if file is not None:
            file.close()

    def _would_overflow(self, size: int, incoming: int) -> bool:
        return bool(self.rotation_bytes) and size > 0 and size + incoming > self.rotation_bytes

    def _rotate(self, stamp: str, index: Optional[int], incoming: int, moment: datetime) -> None:
        self.close()

        self.directory.mkdir(parents=True, exist_ok=True)
        if index is None:
            index = self._last_index(stamp)
        index, path = self._next_free(stamp, index, incoming)

        self._file = open(path, "ab")
        self._path = path
        self._stamp = stamp
        self._index = index
        self._size = path.stat().st_size

        self._evict(moment)

    def _last_index(self, stamp: str) -> int:
        """Highest rollover index already on disk for the date, 0 if none."""
        last = 0
        for entry in self.directory.iterdir():
            match = self._pattern.match(entry.name)
            if match is not None and match.group(1) == stamp and match.group(2):
                last = max(last, int(match.group(2)))
        return last

    def _next_free(self, stamp: str, index: int, incoming: int) -> Tuple[int, Path]:
        """First file for the date, from index on, with room for incoming bytes."""
        while True:
            path = self.file_path(stamp, index)
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                return index, path
            if not self._would_overflow(size, incoming):
                return index, path
            index += 1

    def _evict(self, moment: datetime) -> None:
        """Delete files whose date stamp is older than the retention window."""
        if self.retention_days <= 0:
            return

        cutoff = (moment - timedelta(days=self.retention_days)).date()

        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            report_error(f"cannot scan {self.directory} for old logs: {e}")
            return

        for entry in entries:
            match = self._pattern.match(entry.name)
            if match is None or entry == self._path:
                continue

            day = parse_date_stamp(match.group(1))
            if day is None or day.date() >= cutoff:
                continue

            try:
                entry.unlink()
            except OSError as e:
                report_error(f"cannot delete old log {entry}: {e}")
