"""OpenDocument spreadsheet reading: archive access, event stream and row extraction."""

from .container import open_document, validate_document_path
from .errors import (
    DocumentOpenError,
    ExtractionError,
    InvalidRepeatAttributeError,
    MalformedDocumentError,
    OdsError,
)
from .extractor import Row, extract_row, for_each_row, iter_rows, read_cell_text
from .tokens import CharacterData, ElementEnd, ElementStart, QName, TokenSource

__all__ = [
    "open_document",
    "validate_document_path",
    "OdsError",
    "DocumentOpenError",
    "ExtractionError",
    "MalformedDocumentError",
    "InvalidRepeatAttributeError",
    "Row",
    "extract_row",
    "for_each_row",
    "iter_rows",
    "read_cell_text",
    "TokenSource",
    "QName",
    "ElementStart",
    "ElementEnd",
    "CharacterData",
]
