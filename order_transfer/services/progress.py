from __future__ import annotations

import sys
import threading
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from order_transfer.errors import InvalidTransitionError, NotFoundError
from order_transfer.models.transfer import TransferRecord, TransferStats, TransferStatus

"""Transfer progress tracking.

TransferProgressTracker owns every TransferRecord. Records are frozen
snapshots kept in a ProgressStore; each mutation builds a new snapshot under
the tracker lock and stores it, so pollers calling get() never block the
executor for long and never see half-applied updates.

State machine: pending → processing → (completed | failed). Terminal records
accept no further updates.

ChunkProgressBar is the terminal counterpart: a tqdm bar over transferred
rows, shown only when stdout is a TTY.
"""

__all__ = [
    "ProgressStore",
    "InMemoryProgressStore",
    "TransferProgressTracker",
    "ChunkProgressBar",
    "is_tty_enabled",
]

_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({TransferStatus.PROCESSING}),
    TransferStatus.PROCESSING: frozenset({TransferStatus.COMPLETED, TransferStatus.FAILED}),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.FAILED: frozenset(),
}


class ProgressStore(Protocol):
    """Storage backend for transfer records (swap for a persistent one as needed)."""

    def insert(self, record: TransferRecord) -> None:
        """Store a new record; raises ValueError when the id already exists."""
        ...

    def put(self, record: TransferRecord) -> None:
        ...

    def get(self, transfer_id: str) -> TransferRecord | None:
        ...


class InMemoryProgressStore:
    """Volatile dict-backed ProgressStore."""

    def __init__(self) -> None:
        self._records: dict[str, TransferRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: TransferRecord) -> None:
        with self._lock:
            if record.transfer_id in self._records:
                raise ValueError(f"transfer already exists: {record.transfer_id}")
            self._records[record.transfer_id] = record

    def put(self, record: TransferRecord) -> None:
        with self._lock:
            self._records[record.transfer_id] = record

    def get(self, transfer_id: str) -> TransferRecord | None:
        with self._lock:
            return self._records.get(transfer_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def _now() -> datetime:
    return datetime.now(UTC)


class TransferProgressTracker:
    """Creates, updates and serves TransferRecords."""

    def __init__(self, store: ProgressStore | None = None) -> None:
        self.store: ProgressStore = store if store is not None else InMemoryProgressStore()
        self._lock = threading.Lock()

    def create(self, transfer_id: str, total_rows: int = 0, message: str = "") -> TransferRecord:
        now = _now()
        record = TransferRecord(
            transfer_id=transfer_id,
            status=TransferStatus.PENDING,
            progress=0,
            stats=TransferStats(total_rows=total_rows),
            created_at=now,
            updated_at=now,
            message=message,
        )
        with self._lock:
            self.store.insert(record)
        return record

    def get(self, transfer_id: str) -> TransferRecord:
        """Return the current snapshot.

        Raises:
            NotFoundError: no transfer with this id was ever created
        """
        record = self.store.get(transfer_id)
        if record is None:
            raise NotFoundError(f"transfer not found: {transfer_id}")
        return record

    def update(
        self,
        transfer_id: str,
        progress: int,
        processed_rows: int,
        duplicate_rows: int,
        *,
        total_rows: int | None = None,
        errors: int | None = None,
        message: str | None = None,
    ) -> TransferRecord:
        """Record progress of a running transfer.

        Raises:
            NotFoundError: unknown transfer id
            InvalidTransitionError: the record is already terminal
            ValueError: progress outside 0-100, or processed_rows > total_rows
        """
        if not 0 <= progress <= 100:
            raise ValueError(f"progress must be within 0-100, got {progress}")
        with self._lock:
            current = self.get(transfer_id)
            if current.is_terminal:
                raise InvalidTransitionError(
                    f"transfer {transfer_id} is {current.status.value}; no further updates"
                )
            total = current.stats.total_rows if total_rows is None else total_rows
            if processed_rows > total:
                raise ValueError(f"processed_rows ({processed_rows}) exceeds total_rows ({total})")
            stats = TransferStats(
                total_rows=total,
                processed_rows=processed_rows,
                duplicate_rows=duplicate_rows,
                errors=current.stats.errors if errors is None else errors,
            )
            record = replace(
                current,
                progress=progress,
                stats=stats,
                message=current.message if message is None else message,
                updated_at=_now(),
            )
            self.store.put(record)
            return record

    def record_error(self, transfer_id: str) -> TransferRecord:
        """Increment the error counter without touching status / progress."""
        with self._lock:
            current = self.get(transfer_id)
            if current.is_terminal:
                raise InvalidTransitionError(
                    f"transfer {transfer_id} is {current.status.value}; no further updates"
                )
            record = replace(
                current,
                stats=replace(current.stats, errors=current.stats.errors + 1),
                updated_at=_now(),
            )
            self.store.put(record)
            return record

    def set_status(
        self,
        transfer_id: str,
        status: TransferStatus,
        error_message: str | None = None,
        message: str | None = None,
    ) -> TransferRecord:
        """Move a transfer to ``status``.

        Completing a transfer pins progress at 100. Failing it keeps the last
        progress and counts one error.

        Raises:
            NotFoundError: unknown transfer id
            InvalidTransitionError: transition not allowed by the state machine
        """
        with self._lock:
            current = self.get(transfer_id)
            if status not in _TRANSITIONS[current.status]:
                raise InvalidTransitionError(
                    f"transfer {transfer_id}: {current.status.value} -> {status.value} not allowed"
                )
            now = _now()
            changes: dict[str, Any] = {"status": status, "updated_at": now}
            if message is not None:
                changes["message"] = message
            if error_message is not None:
                changes["error"] = error_message
            if status is TransferStatus.COMPLETED:
                changes["progress"] = 100
            if status is TransferStatus.FAILED:
                changes["stats"] = replace(current.stats, errors=current.stats.errors + 1)
            if status in (TransferStatus.COMPLETED, TransferStatus.FAILED):
                changes["finished_at"] = now
            record = replace(current, **changes)
            self.store.put(record)
            return record


def is_tty_enabled() -> bool:
    """True when stdout is a TTY and a progress bar should be drawn."""
    return sys.stdout.isatty()


class ChunkProgressBar:
    """tqdm bar over rows written by a transfer (TTY only).

    In non-TTY environments (CI, piped output) no bar is created to avoid ANSI
    control sequence spam; every method becomes a no-op.
    """

    def __init__(self, total_rows: int, *, description: str = "Transferring rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.written_rows = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, rows: int, chunk_number: int | None = None) -> None:
        self.written_rows += rows
        if self.enabled and self.pbar is not None:
            if chunk_number is not None:
                self.pbar.set_description(f"{self.description} (chunk {chunk_number})")
            self.pbar.update(rows)

    def set_postfix(self, **kwargs: Any) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ChunkProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
