from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

"""INSERT statement building and execution against a psycopg2 cursor.

- build_insert_statement: single-row parameterized INSERT from header fields
- insert_row: one row inside a savepoint (a failure only discards that row)
- batch_insert: psycopg2.extras.execute_values paging for batch mode

Transaction boundaries (BEGIN / COMMIT / ROLLBACK) belong to the caller.
"""

__all__ = [
    "BatchInsertError",
    "RowInsertError",
    "BatchMetrics",
    "InsertResult",
    "validate_table_name",
    "quote_identifier",
    "build_insert_statement",
    "insert_row",
    "batch_insert",
]

# schema.table 形式も許可
_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

ROW_SAVEPOINT = "ods_row"
BATCH_SAVEPOINT = "ods_batch"


class BatchInsertError(Exception):
    pass


class RowInsertError(Exception):
    """A single row was rejected by the database (already rolled back to its savepoint)."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    failed_rows: int = 0


def validate_table_name(table: str) -> str:
    """Return ``table`` if it is a plain (optionally schema-qualified) identifier."""
    if not _TABLE_NAME_RE.match(table):
        raise ValueError(
            f"invalid table name {table!r}: only letters, digits, '_' and one optional 'schema.' prefix"
        )
    return table


def quote_identifier(name: str) -> str:
    """Double-quote a column name, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def build_insert_statement(table: str, fields: Sequence[str]) -> str:
    """``INSERT INTO table ("f1","f2") VALUES (%s,%s)`` for the given fields."""
    validate_table_name(table)
    if not fields:
        raise ValueError("cannot build an INSERT without fields")
    cols_sql = ",".join(quote_identifier(f) for f in fields)
    placeholders = ",".join("%s" for _ in fields)
    return f"INSERT INTO {table} ({cols_sql}) VALUES ({placeholders})"


def insert_row(cursor: Any, statement: str, params: Sequence[Any]) -> None:
    """Execute one INSERT inside a savepoint.

    Raises:
        RowInsertError: the database rejected the row; the transaction is
            still usable because it was rolled back to the savepoint.
    """
    cursor.execute(f"SAVEPOINT {ROW_SAVEPOINT}")
    try:
        cursor.execute(statement, tuple(params))
    except psycopg2.Error as e:
        cursor.execute(f"ROLLBACK TO SAVEPOINT {ROW_SAVEPOINT}")
        raise RowInsertError(str(e).strip() or type(e).__name__) from e
    cursor.execute(f"RELEASE SAVEPOINT {ROW_SAVEPOINT}")


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert ``rows`` with psycopg2.extras.execute_values inside one savepoint.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: 対象テーブル名 (validate_table_name 済み)
    columns: 挿入列 (header 順)
    rows: 行シーケンス
    page_size: execute_values の page_size
    metrics_callback: receives BatchMetrics for the call. Not invoked when
        ``rows`` is empty (nothing is executed).

    Raises:
        BatchInsertError: the batch was rejected; rolled back to the savepoint.
    """
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0)

    validate_table_name(table)
    cols_sql = ",".join(quote_identifier(c) for c in columns)
    base_sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"

    cursor.execute(f"SAVEPOINT {BATCH_SAVEPOINT}")
    start_time = time.time()
    try:
        execute_values(cursor, base_sql, rows_list, page_size=page_size)
    except psycopg2.Error as e:
        cursor.execute(f"ROLLBACK TO SAVEPOINT {BATCH_SAVEPOINT}")
        raise BatchInsertError(str(e).strip() or type(e).__name__) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )
    cursor.execute(f"RELEASE SAVEPOINT {BATCH_SAVEPOINT}")

    return InsertResult(inserted_rows=len(rows_list))
