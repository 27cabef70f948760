from __future__ import annotations

import argparse
import itertools
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pandas as pd
import psycopg2
from dotenv import load_dotenv

from ods_importer.config.loader import ConfigError, load_config
from ods_importer.db.batch_insert import validate_table_name
from ods_importer.logging.error_log import ErrorLogBuffer
from ods_importer.logging.init import log_summary, set_debug, setup_logging
from ods_importer.models.config_models import ImportConfig
from ods_importer.ods.container import open_document, validate_document_path
from ods_importer.ods.errors import DocumentOpenError, ExtractionError
from ods_importer.ods.extractor import iter_rows
from ods_importer.services.loader import HeaderError, LoadError, header_fields, load_document
from ods_importer.services.summary import render_summary_line

"""CLI entrypoint.

    ods-import ODS_FILE TABLE [--config PATH] [--debug] [--dry-run] [--inspect-data]

Flow: .env -> config -> argument checks -> DB connection -> load_document ->
SUMMARY line -> exit code.

Exit codes:
- 0: every data row inserted (or skipped as empty)
- 2: document loaded, some rows rejected by the database
- 1: fatal (config, arguments, unreadable / malformed document, header, DB connection)
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

DEFAULT_INSPECT_ROWS = 5


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper; tested via integration)
    """Provide a psycopg2 cursor.

    接続情報の優先順位:
        1. DATABASE_URL / PGDSN (DSN 全体)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション (不足分のフォールバック)
    `.env` は main() 冒頭で上書きモードで読み込み済み。
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    try:
        # BEGIN / COMMIT / ROLLBACK は load_document が明示的に発行する
        conn.autocommit = True
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; .env values override the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="ods-import",
        description="Load the rows of an OpenDocument spreadsheet into a PostgreSQL table",
    )
    p.add_argument("ods_file", type=Path, help="Spreadsheet (.ods) to read; first row is the header")
    p.add_argument("table", help="Target table; header cells must match its column names")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/import.yml if present)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dry-run", action="store_true", help="Extract and bind rows without a database")
    p.add_argument("--inspect-data", action="store_true", help="Print the header & first rows then exit")
    p.add_argument(
        "--rows", type=int, default=DEFAULT_INSPECT_ROWS, help="Rows shown by --inspect-data (default: 5)"
    )
    return p.parse_args(argv)


def _inspect_data(path: Path, cfg: ImportConfig, limit: int) -> int:
    """Print a DataFrame preview of the header and the first ``limit`` data rows."""
    with open_document(path, chunk_size=cfg.load.chunk_size) as tokens:
        rows = list(itertools.islice(iter_rows(tokens), limit + 1))
    if not rows:
        print(f"inspect: {path.name} contains no rows")
        return EXIT_SUCCESS_ALL
    header, data = rows[0], rows[1:]
    fields = header_fields(header)
    frame = pd.DataFrame(
        [[row.cells.get(column) for column, _ in fields] for row in data],
        columns=[name for _, name in fields],
        index=[row.row_index for row in data],
    )
    print(f"FILE: {path.name} fields={[name for _, name in fields]}")
    print(f"  header columns_consumed={header.columns_consumed}")
    if frame.empty:
        print("  (no data rows)")
    else:
        print(frame.to_string())
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで main([...]) を直接呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        table = validate_table_name(args.table)
        path = validate_document_path(args.ods_file)
    except (ValueError, DocumentOpenError) as e:
        logger.error(f"arguments: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        try:
            return _inspect_data(path, cfg, max(args.rows, 0))
        except (DocumentOpenError, ExtractionError, HeaderError) as e:
            logger.error(f"inspect: {e}")
            return EXIT_FATAL

    logger.info(f"Loading {path.name} into {table}")
    error_log = ErrorLogBuffer()
    disable_db = args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1"
    try:
        if disable_db:
            logger.debug("DB connect disabled -> mock mode")
            result = load_document(path, table, None, options=cfg.load, error_log=error_log)
            db_mode = "mock"
        else:
            with _db_connection(cfg) as cur:
                result = load_document(path, table, cur, options=cfg.load, error_log=error_log)
            db_mode = "live"
    except DocumentOpenError as e:
        logger.error(f"document: {e}")
        return EXIT_FATAL
    except ExtractionError as e:
        logger.error(f"extraction stopped, transaction rolled back: {e}")
        return EXIT_FATAL
    except LoadError as e:
        logger.error(f"load: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} inserted={result.inserted_rows} failed={result.failed_rows}")
    if result.total_batches:
        logger.info(
            f"batches={result.total_batches} avg_batch_sec={result.avg_batch_seconds:.4f} "
            f"p95_batch_sec={result.p95_batch_seconds:.4f}"
        )
    if result.has_failures:
        logger.warning(f"{result.failed_rows} rows rejected, see {error_log.file_path}")

    # log_summary が "SUMMARY " を付けるので除去
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.has_failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL
