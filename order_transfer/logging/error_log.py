from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

from order_transfer.models.error_record import ErrorRecord

"""Error log buffering.

Failures recorded during a transfer are buffered in memory and flushed as JSON
Lines to ``<directory>/errors-YYYYMMDD-HHMMSS.log`` (UTC, one file per
buffer). The executor flushes once per transfer; concurrent transfers may share
one buffer, so append / flush are lock-guarded.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines."""

    def __init__(self, directory: Path | str | None = None) -> None:
        self._directory = Path(directory) if directory is not None else DEFAULT_LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._lock = threading.Lock()

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._directory / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        with self._lock:
            self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the log path, or None when nothing was buffered."""
        with self._lock:
            if not self._records:
                return None
            fp = self.file_path
            fp.parent.mkdir(parents=True, exist_ok=True)
            with fp.open("a", encoding="utf-8") as f:
                for r in self._records:
                    f.write(r.to_json_line() + "\n")
            self._records.clear()
            return fp
