from __future__ import annotations

import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import DocumentOpenError
from .tokens import DEFAULT_CHUNK_SIZE, TokenSource

"""Opening an .ods archive and exposing content.xml as a TokenSource.

An OpenDocument spreadsheet is a zip archive; the cell data lives in the
``content.xml`` entry. Failures here are DocumentOpenError, kept separate
from parse failures (MalformedDocumentError) raised while reading tokens.
"""

__all__ = [
    "CONTENT_ENTRY",
    "ACCEPTED_SUFFIXES",
    "validate_document_path",
    "open_document",
]

CONTENT_ENTRY = "content.xml"
ACCEPTED_SUFFIXES = (".ods", ".zip")


def validate_document_path(path: Path) -> Path:
    """Check the file exists and has an accepted extension (case-insensitive)."""
    if not path.exists():
        raise DocumentOpenError(f"ODS file not found: {path}")
    if not path.is_file():
        raise DocumentOpenError(f"not a file: {path}")
    if path.suffix.lower() not in ACCEPTED_SUFFIXES:
        raise DocumentOpenError(
            f"unsupported file type '{path.suffix}', expected one of {', '.join(ACCEPTED_SUFFIXES)}"
        )
    return path


@contextmanager
def open_document(path: Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[TokenSource]:
    """Yield a TokenSource over the decompressed content.xml of ``path``.

    Archive and entry stream are closed when the context exits.
    """
    validate_document_path(path)
    try:
        archive = zipfile.ZipFile(path)
    except (zipfile.BadZipFile, OSError) as e:
        raise DocumentOpenError(f"cannot open {path.name} as an archive: {e}") from e
    try:
        try:
            stream = archive.open(CONTENT_ENTRY)
        except KeyError:
            raise DocumentOpenError(f"{path.name} has no {CONTENT_ENTRY} entry") from None
        except (zipfile.BadZipFile, OSError, RuntimeError) as e:
            # RuntimeError: encrypted entry
            raise DocumentOpenError(f"cannot read {CONTENT_ENTRY} from {path.name}: {e}") from e
        with stream:
            yield TokenSource(stream, chunk_size=chunk_size)
    finally:
        archive.close()
