from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from ..errors import (
    DeleteFailureError,
    SheetOperationError,
    TransferError,
    TransferValidationError,
    WriteFailureError,
)
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import TransferSettings
from ..models.processing_result import ChunkMetrics, ChunkStatsAccumulator
from ..models.sheet import SheetData, SheetRef, fit_row
from ..models.transfer import (
    DuplicateHandling,
    HeaderMismatch,
    TransferMode,
    TransferRequest,
    TransferResult,
    TransferStatus,
)
from ..sheets.provider import SheetProvider, sheet_operation
from .duplicates import resolve_duplicates
from .filtering import filter_sheet
from .headers import compare_headers
from .progress import ChunkProgressBar, TransferProgressTracker
from .summary import format_seconds

logger = logging.getLogger(__name__)

"""Chunked transfer execution.

Coordinates one transfer end to end:

1. filter the source sheet by date range / status
2. check the destination header row (advisory, logged only)
3. drop rows whose identity key already exists in the destination
4. append accepted rows in fixed-size chunks, strictly in order
5. in move mode, delete the transferred source rows (highest row first)

A failed chunk append fails the whole transfer and nothing is deleted. A failed
delete only produces a warning: the rows are already safe in the destination.
Every outcome is returned as a TransferResult; only unexpected exceptions
propagate (after the progress record is marked failed).
"""

__all__ = [
    "TransferExecutor",
    "execute_transfer",
    "new_transfer_id",
]


def new_transfer_id() -> str:
    return f"transfer_{uuid.uuid4().hex[:12]}"


def _chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class TransferExecutor:
    """Runs transfers against a sheet provider and reports through a progress tracker.

    Args:
        provider: Sheet backend (read / append / delete)
        tracker: Progress tracker; a fresh in-memory one when omitted
        settings: Chunk size, identity columns, header contract, ...
        error_log: Buffer receiving structured failure records; flushed after
            each transfer
    """

    def __init__(
        self,
        provider: SheetProvider,
        tracker: TransferProgressTracker | None = None,
        settings: TransferSettings | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.provider = provider
        self.tracker = tracker if tracker is not None else TransferProgressTracker()
        self.settings = settings if settings is not None else TransferSettings.defaults()
        self.error_log = (
            error_log if error_log is not None else ErrorLogBuffer(Path(self.settings.error_log_directory))
        )
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()
        self._futures: dict[str, Future[TransferResult]] = {}

    # ------------------------------------------------------------------ sync

    def execute_transfer(self, request: TransferRequest, transfer_id: str | None = None) -> TransferResult:
        """Run one transfer to completion or failure.

        Args:
            request: What to transfer
            transfer_id: Id of a record already created with the tracker
                (submit() does this); a new record is created when None

        Returns:
            TransferResult (success or failure)
        """
        started = time.perf_counter()
        if transfer_id is None:
            transfer_id = new_transfer_id()
            self.tracker.create(transfer_id)
        self.tracker.set_status(transfer_id, TransferStatus.PROCESSING, message="Transfer started")
        logger.info(
            "transfer %s started: %s -> %s range=%s..%s status=%s mode=%s",
            transfer_id,
            request.source,
            request.destination,
            request.from_date.isoformat(),
            request.to_date.isoformat(),
            request.status or "*",
            request.mode.value,
        )

        try:
            return self._run(request, transfer_id, started)
        except TransferError as e:
            return self._fail(request, transfer_id, e, started)
        except Exception as e:
            self.tracker.set_status(
                transfer_id, TransferStatus.FAILED, error_message=str(e), message="Transfer failed unexpectedly"
            )
            raise
        finally:
            try:
                self.error_log.flush()
            except OSError as e:
                logger.warning("failed to flush error log: %s", e)

    def _run(self, request: TransferRequest, transfer_id: str, started: float) -> TransferResult:
        s = self.settings
        if request.duplicate_handling is not DuplicateHandling.SKIP:
            raise TransferValidationError(
                f"duplicate handling '{request.duplicate_handling.value}' is not supported; use 'skip'"
            )

        # (a) 抽出
        filtered = filter_sheet(
            self.provider,
            request.source,
            request.from_date,
            request.to_date,
            request.status,
            date_column=s.date_column,
            status_column=s.status_column,
        )
        total = filtered.row_count
        self.tracker.update(transfer_id, 0, 0, 0, total_rows=total, message=f"Found {total} rows in range")
        if total == 0:
            return self._complete(
                request, transfer_id, started, message="No rows found for the selected date range."
            )

        # (b) 転送先の既存データ + ヘッダ確認 (警告のみ)
        with sheet_operation("read", request.destination):
            destination = self.provider.read_sheet(request.destination)
        if destination.width == 0:
            raise TransferValidationError(f"destination sheet {request.destination} has no header row")
        mismatch: HeaderMismatch | None = None
        if s.validate_headers:
            mismatch = compare_headers(destination.headers, s.required_headers)
            if mismatch is not None:
                logger.warning(
                    "destination %s headers do not match: missing=%s extra=%s",
                    request.destination,
                    mismatch.missing,
                    mismatch.extra,
                )

        # (c) 重複判定
        resolution = resolve_duplicates(filtered, destination, s.identity_columns, s.identity_separator)
        duplicates = len(resolution.duplicate_rows)
        self.tracker.update(
            transfer_id, 0, 0, duplicates, message=f"{duplicates} duplicates found"
        )
        if not resolution.unique_rows:
            return self._complete(
                request,
                transfer_id,
                started,
                duplicates=duplicates,
                mismatch=mismatch,
                message=f"All {total} rows already exist in the destination; nothing to transfer.",
            )

        accepted_rows = [filtered.rows[i] for i in resolution.unique_rows]
        accepted_row_numbers = [filtered.source_row_numbers[i] for i in resolution.unique_rows]

        # (e) チャンク書き込み
        transferred, chunk_stats = self._write_chunks(
            transfer_id, request.destination, destination, accepted_rows, duplicates
        )

        # (f) move: 転送済み行のみ削除
        deleted = 0
        warnings: list[str] = []
        if request.mode is TransferMode.MOVE and transferred > 0:
            deleted, warnings = self._delete_source_rows(
                transfer_id, request.source, accepted_row_numbers[:transferred]
            )

        verb = "moved" if request.mode is TransferMode.MOVE else "copied"
        message = f"Successfully {verb} {transferred} rows. {duplicates} duplicates skipped."
        if warnings:
            message += f" Warning: only {deleted} of {transferred} source rows were removed."
        return self._complete(
            request,
            transfer_id,
            started,
            transferred=transferred,
            duplicates=duplicates,
            deleted=deleted,
            warnings=warnings,
            mismatch=mismatch,
            chunk_stats=chunk_stats,
            message=message,
        )

    def _write_chunks(
        self,
        transfer_id: str,
        dest_ref: SheetRef,
        destination: SheetData,
        rows: Sequence[Sequence[str]],
        duplicates: int,
    ) -> tuple[int, tuple[int, float, float]]:
        """Append ``rows`` chunk by chunk; raises WriteFailureError on the first failure."""
        width = destination.width
        cursor = destination.next_empty_row
        chunks = _chunked(rows, self.settings.chunk_size)
        accumulator = ChunkStatsAccumulator()
        written = 0

        with ChunkProgressBar(len(rows), description=f"Transferring to {dest_ref.sheet_name}") as bar:
            for number, chunk in enumerate(chunks, start=1):
                fitted = [fit_row(r, width) for r in chunk]
                chunk_start = time.perf_counter()
                try:
                    with sheet_operation("append", dest_ref):
                        start_row = self.provider.append_rows(dest_ref, fitted)
                except TransferError as e:
                    logger.error(
                        "transfer %s chunk %d/%d (%d rows at row %d) failed: %s",
                        transfer_id,
                        number,
                        len(chunks),
                        len(fitted),
                        cursor,
                        e,
                    )
                    raise WriteFailureError(number, str(e)) from e
                if start_row != cursor:
                    logger.debug(
                        "transfer %s chunk %d written at row %s (expected %d)", transfer_id, number, start_row, cursor
                    )
                chunk_elapsed = time.perf_counter() - chunk_start
                accumulator.add(
                    ChunkMetrics(
                        chunk_number=number,
                        chunk_size=len(fitted),
                        start_row=cursor,
                        elapsed_seconds=chunk_elapsed,
                    )
                )
                cursor += len(fitted)
                written += len(fitted)

                self.tracker.update(
                    transfer_id,
                    int(written * 100 / len(rows)),
                    written,
                    duplicates,
                    message=f"Transferred chunk {number}/{len(chunks)}",
                )
                bar.advance(len(fitted), number)
                bar.set_postfix(chunk_sec=format_seconds(chunk_elapsed))
                logger.debug("transfer %s chunk %d/%d ok rows=%d", transfer_id, number, len(chunks), len(fitted))

        return written, accumulator.get_stats()

    def _delete_source_rows(
        self, transfer_id: str, source: SheetRef, row_numbers: Sequence[int]
    ) -> tuple[int, list[str]]:
        """Delete transferred source rows, highest row number first.

        Returns:
            (deleted row count, warnings). Failures never raise.
        """
        ordered = sorted(row_numbers, reverse=True)
        deleted = 0
        for batch in _chunked(ordered, self.settings.chunk_size):
            try:
                with sheet_operation("delete", source):
                    self.provider.delete_rows(source, list(batch))
            except TransferError as e:
                failure = DeleteFailureError(
                    f"transferred rows copied but {len(ordered) - deleted} source rows "
                    f"were not deleted from {source}: {e}"
                )
                logger.warning("transfer %s: %s", transfer_id, failure)
                self.error_log.append(
                    ErrorRecord.create(
                        transfer_id=transfer_id,
                        spreadsheet=source.spreadsheet_id,
                        sheet=source.sheet_name,
                        row=batch[0],
                        error_type=failure.kind,
                        message=str(e),
                    )
                )
                self.tracker.record_error(transfer_id)
                return deleted, [str(failure)]
            deleted += len(batch)
        logger.info("transfer %s deleted %d source rows from %s", transfer_id, deleted, source)
        return deleted, []

    def _complete(
        self,
        request: TransferRequest,
        transfer_id: str,
        started: float,
        *,
        message: str,
        transferred: int = 0,
        duplicates: int = 0,
        deleted: int = 0,
        warnings: Sequence[str] = (),
        mismatch: HeaderMismatch | None = None,
        chunk_stats: tuple[int, float, float] = (0, 0.0, 0.0),
    ) -> TransferResult:
        self.tracker.set_status(transfer_id, TransferStatus.COMPLETED, message=message)
        logger.info("transfer %s completed: %s", transfer_id, message)
        total_chunks, avg_chunk, p95_chunk = chunk_stats
        return TransferResult(
            success=True,
            transfer_id=transfer_id,
            status=TransferStatus.COMPLETED,
            message=message,
            mode=request.mode,
            transferred_rows=transferred,
            duplicates_found=duplicates,
            deleted_rows=deleted,
            warnings=tuple(warnings),
            header_mismatch=mismatch,
            total_chunks=total_chunks,
            avg_chunk_seconds=avg_chunk,
            p95_chunk_seconds=p95_chunk,
            elapsed_seconds=time.perf_counter() - started,
        )

    def _fail(
        self, request: TransferRequest, transfer_id: str, error: TransferError, started: float
    ) -> TransferResult:
        message = str(error)
        if isinstance(error, SheetOperationError):
            spreadsheet, sheet = error.spreadsheet_id, error.sheet_name
        elif isinstance(error, WriteFailureError):
            spreadsheet, sheet = request.destination.spreadsheet_id, request.destination.sheet_name
        else:
            spreadsheet, sheet = request.source.spreadsheet_id, request.source.sheet_name
        self.error_log.append(
            ErrorRecord.create(
                transfer_id=transfer_id,
                spreadsheet=spreadsheet,
                sheet=sheet,
                row=-1,
                error_type=error.kind,
                message=message,
            )
        )
        self.tracker.set_status(
            transfer_id, TransferStatus.FAILED, error_message=message, message="Transfer failed"
        )
        logger.error("transfer %s failed: %s", transfer_id, message)
        return TransferResult(
            success=False,
            transfer_id=transfer_id,
            status=TransferStatus.FAILED,
            message=message,
            mode=request.mode,
            error_kind=error.kind,
            elapsed_seconds=time.perf_counter() - started,
        )

    # ----------------------------------------------------------------- async

    def submit(self, request: TransferRequest) -> str:
        """Queue a transfer on the worker pool and return its id for polling."""
        transfer_id = new_transfer_id()
        self.tracker.create(transfer_id, message="Transfer queued")
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.settings.max_concurrent_transfers,
                    thread_name_prefix="transfer",
                )
            self._futures[transfer_id] = self._pool.submit(self._run_submitted, request, transfer_id)
        return transfer_id

    def _run_submitted(self, request: TransferRequest, transfer_id: str) -> TransferResult:
        try:
            return self.execute_transfer(request, transfer_id=transfer_id)
        except Exception:
            logger.exception("transfer %s aborted by unexpected error", transfer_id)
            raise

    def result(self, transfer_id: str, timeout: float | None = None) -> TransferResult:
        """Block until a submitted transfer finishes and return its result.

        The result can be collected once; the progress record stays in the tracker.
        """
        with self._pool_lock:
            future = self._futures.get(transfer_id)
        if future is None:
            raise KeyError(f"no submitted transfer with id {transfer_id}")
        try:
            return future.result(timeout=timeout)
        finally:
            if future.done():
                with self._pool_lock:
                    self._futures.pop(transfer_id, None)

    def shutdown(self, wait: bool = True) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=wait)
                self._pool = None

    def __enter__(self) -> TransferExecutor:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()


def execute_transfer(
    provider: SheetProvider,
    request: TransferRequest,
    *,
    tracker: TransferProgressTracker | None = None,
    settings: TransferSettings | None = None,
) -> TransferResult:
    """One-shot convenience wrapper around TransferExecutor.execute_transfer."""
    return TransferExecutor(provider, tracker=tracker, settings=settings).execute_transfer(request)
