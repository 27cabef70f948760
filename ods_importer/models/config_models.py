from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the ODS -> PostgreSQL importer.

Built by ``ods_importer.config.loader.load_config`` from config/import.yml;
every field has a default so the tool also runs without a config file.
"""

__all__ = [
    "LOAD_MODES",
    "DatabaseConfig",
    "LoadOptions",
    "ImportConfig",
]

LOAD_MODES = ("row", "batch")


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback values.

    Environment variables (DATABASE_URL / PGDSN / PGHOST ...) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class LoadOptions:
    """How extracted rows are turned into INSERTs."""
    mode: str = "row"  # row: 1行ずつ SAVEPOINT / batch: execute_values
    page_size: int = 1000  # batch mode page size
    skip_empty_rows: bool = True  # data rows without any cell are not inserted
    null_sentinels: frozenset[str] = field(default_factory=frozenset)  # 大文字化済
    progress_every: int = 20  # INFO line every N inserted rows (0 = off)
    chunk_size: int = 64 * 1024  # content.xml read size

    def is_null_sentinel(self, value: str) -> bool:
        return bool(self.null_sentinels) and value.strip().upper() in self.null_sentinels


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    load: LoadOptions = field(default_factory=LoadOptions)
