from __future__ import annotations

from ..models.processing_result import LoadResult

"""SUMMARY line rendering.

Format:
SUMMARY file={name} table={table} rows={read} inserted={n} failed={n}
skipped={n} elapsed_sec={elapsed} throughput_rps={throughput}
"""


def _format_number(value: float) -> str:
    # 整数値は小数点なし、極小値は指数表記を避ける
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(round(value, 3))


def render_summary_line(result: LoadResult) -> str:
    """Render the SUMMARY line for one load.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = LoadResult(
        ...     file_name="people.ods", table="people", fields=["name"],
        ...     rows_read=3, inserted_rows=3, failed_rows=0, skipped_rows=0,
        ...     start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=1.5,
        ... )
        >>> render_summary_line(result)
        'SUMMARY file=people.ods table=people rows=3 inserted=3 failed=0 skipped=0 elapsed_sec=2 throughput_rps=1.5'
    """
    return (
        f"SUMMARY file={result.file_name} "
        f"table={result.table} "
        f"rows={result.rows_read} "
        f"inserted={result.inserted_rows} "
        f"failed={result.failed_rows} "
        f"skipped={result.skipped_rows} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
