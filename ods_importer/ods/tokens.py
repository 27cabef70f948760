from __future__ import annotations

import io
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import BinaryIO, NamedTuple, Protocol
from xml.parsers import expat

from .errors import MalformedDocumentError

"""Forward-only markup event stream over content.xml.

The decompressed document is fed to an expat parser in fixed-size chunks and
the resulting callbacks are queued as events, so the caller pulls one event at
a time and memory use does not depend on document size.

Events:
- ElementStart(name, attributes)
- ElementEnd(name)
- CharacterData(text)

``TokenSource.next()`` returns ``None`` once the stream is exhausted.
"""

__all__ = [
    "QName",
    "ElementStart",
    "ElementEnd",
    "CharacterData",
    "Event",
    "TokenStream",
    "TokenSource",
    "DEFAULT_CHUNK_SIZE",
]

DEFAULT_CHUNK_SIZE = 64 * 1024

# expat reports namespaced names as "<uri><sep><local>"
_NS_SEPARATOR = " "


class QName(NamedTuple):
    """Namespace-qualified element / attribute name (compared by value)."""
    namespace: str
    local: str

    @classmethod
    def parse(cls, raw: str) -> QName:
        uri, sep, local = raw.rpartition(_NS_SEPARATOR)
        if not sep:
            return cls("", raw)
        return cls(uri, local)


@dataclass(frozen=True)
class ElementStart:
    name: QName
    attributes: dict[QName, str] = field(default_factory=dict)

    def attribute(self, name: QName) -> str | None:
        """Attribute value, or None when absent (an empty value stays ``""``)."""
        return self.attributes.get(name)


@dataclass(frozen=True)
class ElementEnd:
    name: QName


@dataclass(frozen=True)
class CharacterData:
    text: str


Event = ElementStart | ElementEnd | CharacterData


class TokenStream(Protocol):
    def next(self) -> Event | None: ...


class TokenSource:
    """Pull-based event stream backed by a binary file object.

    XML syntax errors are reported as MalformedDocumentError after every
    event produced before the error has been handed out.
    """

    def __init__(self, stream: BinaryIO, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._stream = stream
        self._chunk_size = chunk_size
        self._events: deque[Event] = deque()
        self._finished = False
        self._error: MalformedDocumentError | None = None

        parser = expat.ParserCreate(namespace_separator=_NS_SEPARATOR)
        parser.buffer_text = True
        parser.StartElementHandler = self._on_start
        parser.EndElementHandler = self._on_end
        parser.CharacterDataHandler = self._on_chars
        self._parser = parser

    @classmethod
    def from_bytes(cls, data: bytes, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> TokenSource:
        return cls(io.BytesIO(data), chunk_size=chunk_size)

    def next(self) -> Event | None:
        while not self._events:
            if self._error is not None:
                raise self._error
            if self._finished:
                return None
            self._feed()
        return self._events.popleft()

    def __iter__(self) -> Iterator[Event]:
        while True:
            event = self.next()
            if event is None:
                return
            yield event

    def _feed(self) -> None:
        chunk = self._stream.read(self._chunk_size)
        try:
            if chunk:
                self._parser.Parse(chunk, False)
            else:
                self._finished = True
                self._parser.Parse(b"", True)
        except expat.ExpatError as e:
            self._finished = True
            self._error = MalformedDocumentError(
                f"invalid XML at line {e.lineno}, column {e.offset}: {expat.ErrorString(e.code)}"
            )

    # --- expat callbacks -------------------------------------------------
    def _on_start(self, name: str, attrs: dict[str, str]) -> None:
        attributes = {QName.parse(k): v for k, v in attrs.items()}
        self._events.append(ElementStart(QName.parse(name), attributes))

    def _on_end(self, name: str) -> None:
        self._events.append(ElementEnd(QName.parse(name)))

    def _on_chars(self, data: str) -> None:
        self._events.append(CharacterData(data))
