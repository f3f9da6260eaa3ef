from __future__ import annotations

from ..models.transfer import TransferResult

"""SUMMARY line rendering for a finished transfer.

Format:
SUMMARY transfer={id} status={status} mode={mode} rows={transferred}
duplicates={duplicates} deleted={deleted} chunks={chunks} avg_chunk_sec={avg}
p95_chunk_sec={p95} elapsed_sec={elapsed}
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    """Render seconds without scientific notation; integers without a decimal point."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip('0').rstrip('.')
    return f"{seconds:.3f}".rstrip('0').rstrip('.')


def render_summary_line(result: TransferResult) -> str:
    """Render the SUMMARY line for ``result``.

    Examples:
        >>> from order_transfer.models.transfer import TransferMode, TransferStatus
        >>> r = TransferResult(
        ...     success=True, transfer_id="transfer_abc", status=TransferStatus.COMPLETED,
        ...     message="ok", mode=TransferMode.COPY, transferred_rows=150,
        ...     duplicates_found=3, total_chunks=2, avg_chunk_seconds=0.8,
        ...     p95_chunk_seconds=1.1, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(r)
        'SUMMARY transfer=transfer_abc status=completed mode=copy rows=150 duplicates=3 deleted=0 chunks=2 avg_chunk_sec=0.8 p95_chunk_sec=1.1 elapsed_sec=2'
    """
    return (
        f"SUMMARY transfer={result.transfer_id} "
        f"status={result.status.value} "
        f"mode={result.mode.value} "
        f"rows={result.transferred_rows} "
        f"duplicates={result.duplicates_found} "
        f"deleted={result.deleted_rows} "
        f"chunks={result.total_chunks} "
        f"avg_chunk_sec={format_seconds(result.avg_chunk_seconds)} "
        f"p95_chunk_sec={format_seconds(result.p95_chunk_seconds)} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
