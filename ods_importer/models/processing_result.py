from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Result models for one document load.

LoadResult carries the counters and timing used for the SUMMARY line and the
CLI exit code. BatchStatsAccumulator collects per-page timings in batch mode.
"""

__all__ = [
    "LoadResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class LoadResult:
    """Aggregated outcome of loading one ODS document into one table."""
    file_name: str
    table: str
    fields: list[str]  # header から得た列名 (列番号順)
    rows_read: int  # data rows emitted by the extractor (header excluded)
    inserted_rows: int
    failed_rows: int
    skipped_rows: int  # empty data rows not inserted
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # inserted / elapsed
    # batch mode only
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def has_failures(self) -> bool:
        return self.failed_rows > 0


class BatchStatsAccumulator:
    """Accumulates batch timing measurements and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 95th percentile (19th of 20 quantiles)
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
