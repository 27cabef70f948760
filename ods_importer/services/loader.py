from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..db.batch_insert import (
    BatchInsertError,
    RowInsertError,
    batch_insert,
    build_insert_statement,
    insert_row,
    validate_table_name,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import LoadOptions
from ..models.error_record import DOCUMENT_LEVEL_ROW, ErrorRecord
from ..models.processing_result import BatchStatsAccumulator, LoadResult
from ..ods.container import open_document
from ..ods.errors import ExtractionError, InvalidRepeatAttributeError
from ..ods.extractor import Row, for_each_row
from .progress import RowProgress

"""Loading extracted rows into a database table.

The first spreadsheet row names the target columns: its cell texts, ordered
by column index, become the INSERT field list. Every later row binds, per
header column, the text found at the same column index, or NULL when the
row has no cell there.

One document = one transaction. Per-row database failures are rolled back
to a savepoint and counted; extraction / header failures roll back the
whole document.
"""

__all__ = [
    "LoadError",
    "HeaderError",
    "header_fields",
    "RowLoader",
    "load_document",
]

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """Base exception for document load failures."""


class HeaderError(LoadError):
    """Header row unusable as a field list (no names, duplicated names)."""


def header_fields(header: Row) -> list[tuple[int, str]]:
    """(column index, field name) pairs of the header, in column order.

    Blank names are skipped with a warning.

    Raises:
        HeaderError: no usable field name, or a name used twice
    """
    fields: list[tuple[int, str]] = []
    seen: dict[str, int] = {}
    for column in sorted(header.cells):
        name = header.cells[column].strip()
        if not name:
            logger.warning(f"header column {column} is blank, column ignored")
            continue
        if name in seen:
            raise HeaderError(f"duplicate field name {name!r} in header columns {seen[name]} and {column}")
        seen[name] = column
        fields.append((column, name))
    if not fields:
        raise HeaderError("header row has no field names")
    return fields


class RowLoader:
    """Receiver for Table Walker callbacks (on_header once, then on_data_row).

    ``cursor=None`` runs in mock mode: rows are bound and counted but nothing
    is executed.
    """

    def __init__(
        self,
        table: str,
        cursor: Any = None,
        *,
        options: LoadOptions | None = None,
        file_name: str = "<stream>",
        error_log: ErrorLogBuffer | None = None,
        progress: RowProgress | None = None,
    ) -> None:
        self.table = validate_table_name(table)
        self.cursor = cursor
        self.options = options or LoadOptions()
        self.file_name = file_name
        self.error_log = error_log
        self.progress = progress

        self.columns: list[int] = []
        self.fields: list[str] = []
        self.statement: str | None = None

        self.rows_read = 0
        self.inserted_rows = 0
        self.failed_rows = 0
        self.skipped_rows = 0

        self._pending: list[tuple[int, tuple[Any, ...]]] = []  # batch mode buffer
        self.batch_stats = BatchStatsAccumulator()

    # --- walker callbacks ---------------------------------------------------
    def on_header(self, row: Row) -> None:
        pairs = header_fields(row)
        self.columns = [c for c, _ in pairs]
        self.fields = [name for _, name in pairs]
        self.statement = build_insert_statement(self.table, self.fields)
        logger.info(f"header: {len(self.fields)} fields -> {self.table}")
        logger.debug(f"statement: {self.statement}")

    def on_data_row(self, row: Row) -> None:
        if self.statement is None:
            raise LoadError("data row received before the header row")
        self.rows_read += 1
        if self.options.skip_empty_rows and row.is_empty:
            self.skipped_rows += 1
            return

        extra = [c for c in row.cells if c not in self.columns]
        if extra:
            logger.warning(f"row {row.row_index}: columns {extra} have no header field, values ignored")

        params = self.bind(row)
        if self.options.mode == "batch":
            self._pending.append((row.row_index, params))
            if len(self._pending) >= self.options.page_size:
                self._flush_batch()
            return

        if self.cursor is None:
            self._count_inserted(1)
            return
        try:
            insert_row(self.cursor, self.statement, params)
        except RowInsertError as e:
            self._record_failure(row.row_index, "INSERT_FAILED", str(e))
        else:
            self._count_inserted(1)

    def bind(self, row: Row) -> tuple[Any, ...]:
        """Parameters for ``row`` in header field order (None for absent columns)."""
        values: list[Any] = []
        for column in self.columns:
            value = row.cells.get(column)
            if value is not None and self.options.is_null_sentinel(value):
                value = None
            values.append(value)
        return tuple(values)

    def finish(self) -> None:
        """Insert whatever is still buffered (batch mode)."""
        if self._pending:
            self._flush_batch()

    # --- internals ----------------------------------------------------------
    def _flush_batch(self) -> None:
        pending, self._pending = self._pending, []
        if self.cursor is None:
            self._count_inserted(len(pending))
            return
        try:
            batch_insert(
                self.cursor,
                self.table,
                self.fields,
                [params for _, params in pending],
                page_size=self.options.page_size,
                metrics_callback=lambda m: self.batch_stats.add_batch_time(m.elapsed_seconds),
            )
        except BatchInsertError as e:
            first, last = pending[0][0], pending[-1][0]
            logger.warning(f"rows {first}-{last}: batch rejected ({len(pending)} rows): {e}")
            for row_index, _ in pending:
                self._record_failure(row_index, "BATCH_INSERT_FAILED", str(e), log=False)
        else:
            self._count_inserted(len(pending))

    def _count_inserted(self, n: int) -> None:
        before = self.inserted_rows
        self.inserted_rows += n
        if self.progress is not None:
            self.progress.advance(n)
        every = self.options.progress_every
        if every > 0 and self.inserted_rows // every > before // every:
            logger.info(f"{self.inserted_rows} rows inserted")

    def _record_failure(self, row_index: int, error_type: str, message: str, *, log: bool = True) -> None:
        self.failed_rows += 1
        if log:
            logger.warning(f"row {row_index}: insert failed: {message}")
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(
                    file=self.file_name,
                    table=self.table,
                    row=row_index,
                    error_type=error_type,
                    db_message=message,
                )
            )


def _error_type(exc: Exception) -> str:
    if isinstance(exc, InvalidRepeatAttributeError):
        return "INVALID_REPEAT_ATTRIBUTE"
    if isinstance(exc, ExtractionError):
        return "MALFORMED_DOCUMENT"
    if isinstance(exc, HeaderError):
        return "HEADER_ERROR"
    return "LOAD_ERROR"


def _rollback(cursor: Any) -> None:
    if cursor is None:
        return
    try:
        cursor.execute("ROLLBACK")
    except Exception as e:  # pragma: no cover - connection already broken
        logger.error(f"rollback failed: {e}")


def load_document(
    path: Path,
    table: str,
    cursor: Any = None,
    *,
    options: LoadOptions | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> LoadResult:
    """Load one ODS document into ``table``.

    Steps:
    1. Open the archive (DocumentOpenError before any transaction starts)
    2. BEGIN, walk the rows: header -> statement, data rows -> INSERT
    3. COMMIT, or ROLLBACK on extraction / header errors and re-raise

    Args:
        path: .ods file
        table: target table (letters, digits, '_', optional schema prefix)
        cursor: psycopg2 cursor, None for mock mode
        options: load options (defaults when None)
        error_log: buffer receiving failed rows / document-level errors

    Raises:
        ValueError: invalid table name
        DocumentOpenError: file missing, wrong type, not a readable archive
        ExtractionError: malformed document (row index attached when known)
        HeaderError: unusable header row or empty document
    """
    validate_table_name(table)
    options = options or LoadOptions()
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    start_time = datetime.now(UTC)

    with open_document(path, chunk_size=options.chunk_size) as tokens, RowProgress(path.name) as progress:
        loader = RowLoader(
            table,
            cursor,
            options=options,
            file_name=path.name,
            error_log=error_log,
            progress=progress,
        )
        if cursor is not None:
            cursor.execute("BEGIN")
        try:
            emitted = for_each_row(tokens, loader.on_header, loader.on_data_row)
            if emitted == 0:
                raise HeaderError("document contains no table rows")
            loader.finish()
        except (ExtractionError, LoadError) as e:
            _rollback(cursor)
            row = getattr(e, "row_index", None)
            error_log.append(
                ErrorRecord.create(
                    file=path.name,
                    table=loader.table,
                    row=row if row is not None else DOCUMENT_LEVEL_ROW,
                    error_type=_error_type(e),
                    db_message=str(e),
                )
            )
            error_log.flush()
            raise
        except BaseException:
            _rollback(cursor)
            raise
        if cursor is not None:
            cursor.execute("COMMIT")

    error_log.flush()

    end_time = datetime.now(UTC)
    elapsed = (end_time - start_time).total_seconds()
    throughput = loader.inserted_rows / elapsed if elapsed > 0 else 0.0
    total_batches, avg_batch, p95_batch = loader.batch_stats.get_stats()
    return LoadResult(
        file_name=path.name,
        table=loader.table,
        fields=list(loader.fields),
        rows_read=loader.rows_read,
        inserted_rows=loader.inserted_rows,
        failed_rows=loader.failed_rows,
        skipped_rows=loader.skipped_rows,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=throughput,
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
    )
