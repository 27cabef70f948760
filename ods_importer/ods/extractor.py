from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from .errors import ExtractionError, InvalidRepeatAttributeError, MalformedDocumentError
from .tokens import CharacterData, ElementEnd, ElementStart, Event, QName, TokenStream

"""Streaming table extractor for OpenDocument spreadsheet content.xml.

One pass over the event stream, no look-ahead buffering:

- Table walker (iter_rows / for_each_row): finds table:table-row starts
- Row extractor (extract_row): turns the cells of one row into a sparse
  column -> text map, honouring table:number-columns-repeated on empty cells
- Cell text reader (read_cell_text): flattens one text:p (spans, line breaks,
  links...) into plain text

All nesting is tracked with explicit depth counters so stack usage does not
depend on the document. Column state lives only inside one extract_row call.
"""

__all__ = [
    "TABLE_NS",
    "TEXT_NS",
    "TABLE_ROW",
    "TABLE_CELL",
    "COVERED_TABLE_CELL",
    "TEXT_P",
    "COLUMNS_REPEATED",
    "Row",
    "read_cell_text",
    "extract_row",
    "iter_rows",
    "for_each_row",
]

logger = logging.getLogger(__name__)

TABLE_NS = "urn:oasis:names:tc:opendocument:xmlns:table:1.0"
TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"

TABLE_ROW = QName(TABLE_NS, "table-row")
TABLE_CELL = QName(TABLE_NS, "table-cell")
# 結合セルに隠れた列。位置は占有するので空セルと同じ扱い
COVERED_TABLE_CELL = QName(TABLE_NS, "covered-table-cell")
TEXT_P = QName(TEXT_NS, "p")
COLUMNS_REPEATED = QName(TABLE_NS, "number-columns-repeated")

_CELL_ELEMENTS = frozenset({TABLE_CELL, COVERED_TABLE_CELL})

PARAGRAPH_SEPARATOR = "\n"


@dataclass(frozen=True)
class Row:
    """One logical spreadsheet row.

    cells is sparse: 1-based column index -> text, only for columns backed by
    a cell with a text:p child. columns_consumed is the column cursor at
    row end (repeated empty cells included), useful to spot ragged rows.
    """
    row_index: int
    cells: dict[int, str]
    columns_consumed: int

    @property
    def is_empty(self) -> bool:
        return not self.cells

    def get(self, column: int) -> str | None:
        return self.cells.get(column)


def _pull(tokens: TokenStream, expecting: str) -> Event:
    event = tokens.next()
    if event is None:
        raise MalformedDocumentError(f"document ended inside {expecting}")
    return event


def _repeat_count(event: ElementStart) -> int:
    raw = event.attribute(COLUMNS_REPEATED)
    if raw is None:
        return 1
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidRepeatAttributeError(
            f"number-columns-repeated is not an integer: {raw!r}"
        ) from None
    if value < 1:
        raise InvalidRepeatAttributeError(f"number-columns-repeated must be >= 1: {raw!r}")
    return value


def _skip_element(tokens: TokenStream, expecting: str) -> None:
    """Consume events up to and including the end of the element just opened."""
    depth = 0
    while True:
        event = _pull(tokens, expecting)
        if isinstance(event, ElementStart):
            depth += 1
        elif isinstance(event, ElementEnd):
            if depth == 0:
                return
            depth -= 1


def read_cell_text(tokens: TokenStream) -> str:
    """Flatten the element whose start event was just consumed into plain text.

    Character data is concatenated in document order. Nested elements of any
    name contribute only their descendants' character data. The matching close
    is found by depth, so an inner element with the same name as the outer
    one does not end the read early.
    """
    parts: list[str] = []
    depth = 0
    while True:
        event = _pull(tokens, "cell text")
        if isinstance(event, CharacterData):
            parts.append(event.text)
        elif isinstance(event, ElementStart):
            depth += 1
        elif depth == 0:
            return "".join(parts)
        else:
            depth -= 1


def _scan_cell(tokens: TokenStream) -> str | None:
    """Consume one cell's content up to its close.

    Returns the cell text when the cell has at least one direct text:p child
    (several paragraphs joined with a newline), otherwise None (empty cell).
    Anything else inside the cell (annotations, sub-tables, frames) is skipped.
    """
    paragraphs: list[str] | None = None
    depth = 0
    while True:
        event = _pull(tokens, "table cell")
        if isinstance(event, ElementStart):
            if depth == 0 and event.name == TEXT_P:
                if paragraphs is None:
                    paragraphs = []
                paragraphs.append(read_cell_text(tokens))
            else:
                depth += 1
        elif isinstance(event, ElementEnd):
            if depth == 0:
                break
            depth -= 1
    if paragraphs is None:
        return None
    return PARAGRAPH_SEPARATOR.join(paragraphs)


def extract_row(tokens: TokenStream, row_index: int = 1) -> Row:
    """Extract one row; the table:table-row start event must already be consumed.

    Text cells advance the column cursor by 1 (any repeat attribute on them is
    ignored), empty cells by their repeat count without writing to the map.

    Raises:
        MalformedDocumentError: stream ended before the row closed
        InvalidRepeatAttributeError: repeat attribute not an integer >= 1
    """
    cells: dict[int, str] = {}
    cursor = 0
    try:
        while True:
            event = _pull(tokens, "table row")
            if isinstance(event, ElementStart):
                if event.name in _CELL_ELEMENTS:
                    repeat = _repeat_count(event)
                    text = _scan_cell(tokens)
                    if text is None:
                        cursor += repeat
                    else:
                        cursor += 1
                        cells[cursor] = text
                else:
                    logger.debug(f"row {row_index}: skipping <{event.name.local}> outside cells")
                    _skip_element(tokens, "table row")
            elif isinstance(event, ElementEnd):
                # 子要素は全て消費済みなので、ここに来る終了タグは行の終わり
                if event.name != TABLE_ROW:
                    raise MalformedDocumentError(
                        f"unexpected </{event.name.local}> while reading a row"
                    )
                return Row(row_index=row_index, cells=cells, columns_consumed=cursor)
            elif event.text.strip():
                logger.warning(
                    f"row {row_index}: ignoring text outside any cell after column {cursor}: "
                    f"{event.text.strip()[:40]!r}"
                )
    except ExtractionError as e:
        if e.row_index is None:
            raise e.with_row(row_index) from e
        raise


def iter_rows(tokens: TokenStream) -> Iterator[Row]:
    """Yield every row of the document in order, row_index starting at 1.

    Stopping iteration between rows is safe; the generator holds no row state
    across yields. The first ExtractionError ends the iteration.
    """
    row_index = 0
    while True:
        event = tokens.next()
        if event is None:
            return
        if isinstance(event, ElementStart) and event.name == TABLE_ROW:
            row_index += 1
            yield extract_row(tokens, row_index)


def for_each_row(
    tokens: TokenStream,
    on_header: Callable[[Row], object],
    on_data_row: Callable[[Row], object],
) -> int:
    """Route the first row to on_header and every later row to on_data_row.

    Returns the number of rows emitted (header included).
    """
    count = 0
    for row in iter_rows(tokens):
        count += 1
        if row.row_index == 1:
            on_header(row)
        else:
            on_data_row(row)
    return count
