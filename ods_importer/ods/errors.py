from __future__ import annotations

"""Exception hierarchy for ODS document access and row extraction.

- DocumentOpenError: the archive / content.xml could not be opened
- ExtractionError: the XML event stream could not be turned into rows
  (carries the 1-based row index when the failure happened inside a row)

Normal end-of-row / end-of-document are never reported through exceptions.
"""

__all__ = [
    "OdsError",
    "DocumentOpenError",
    "ExtractionError",
    "MalformedDocumentError",
    "InvalidRepeatAttributeError",
]


class OdsError(Exception):
    """Base class for all ODS related failures."""


class DocumentOpenError(OdsError):
    """Raised when the file is missing, has the wrong extension or is not a readable archive."""


class ExtractionError(OdsError):
    def __init__(self, message: str, row_index: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.row_index = row_index

    def with_row(self, row_index: int) -> ExtractionError:
        """Return a copy of this error bound to ``row_index`` (same class)."""
        return type(self)(self.message, row_index=row_index)

    def __str__(self) -> str:
        if self.row_index is None:
            return self.message
        return f"row {self.row_index}: {self.message}"


class MalformedDocumentError(ExtractionError):
    """Token stream ended before an expected close event, or the XML is not well formed."""


class InvalidRepeatAttributeError(ExtractionError):
    """number-columns-repeated present but not an integer >= 1."""
