from __future__ import annotations

import statistics
from dataclasses import dataclass

"""Chunk timing models for the transfer executor.

ChunkMetrics describes one append call; ChunkStatsAccumulator folds them into
the count / mean / p95 figures reported on TransferResult and the SUMMARY line.
"""

__all__ = [
    "ChunkMetrics",
    "ChunkStatsAccumulator",
]


@dataclass(frozen=True)
class ChunkMetrics:
    """Metrics for a single chunk append."""
    chunk_number: int  # 1-based
    chunk_size: int  # rows in this chunk
    start_row: int  # destination row the chunk was written at
    elapsed_seconds: float


class ChunkStatsAccumulator:
    """Collects per-chunk timings and computes summary statistics."""

    def __init__(self) -> None:
        self.chunk_times: list[float] = []

    def add(self, metrics: ChunkMetrics) -> None:
        self.chunk_times.append(metrics.elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate chunk statistics.

        Returns:
            tuple: (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
        """
        if not self.chunk_times:
            return (0, 0.0, 0.0)

        total_chunks = len(self.chunk_times)
        avg_chunk_seconds = statistics.mean(self.chunk_times)

        if total_chunks == 1:
            p95_chunk_seconds = self.chunk_times[0]
        else:
            # 95th percentile (19th of 20 quantiles)
            p95_chunk_seconds = statistics.quantiles(
                self.chunk_times, n=20, method='inclusive'
            )[18]

        return (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
