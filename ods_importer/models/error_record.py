from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failed row (or per document-level failure with row=-1).
Fixed key set: timestamp, file, table, row, error_type, db_message.
"""

__all__ = [
    "ErrorRecord",
    "DOCUMENT_LEVEL_ROW",
]

# 行番号が特定できない (文書全体の) エラー
DOCUMENT_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: ODS file name being loaded
        table: Target database table
        row: Spreadsheet row index (1-based, header = 1). -1 when unknown
        error_type: Error classification in UPPER_SNAKE_CASE format
        db_message: Database error message or description
    """
    timestamp: str
    file: str
    table: str
    row: int
    error_type: str
    db_message: str

    @staticmethod
    def create(file: str, table: str, row: int, error_type: str, db_message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            table=table,
            row=row,
            error_type=error_type,
            db_message=db_message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
