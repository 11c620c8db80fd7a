"""Incremental XML tokenizer for sitemap documents.

Wraps ``xml.etree.ElementTree.XMLPullParser`` and turns its start/end events
into a flat stream of :class:`Token` values. Elements are detached from the
partially built tree as soon as their trailing text has been emitted, so the
memory held is proportional to the nesting depth rather than to the size of
the document.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterable, Iterator, List, Optional, Union
from xml.parsers import expat

from .errors import MalformedXmlError

ByteSource = Union[bytes, bytearray, Iterable[bytes], IO[bytes]]

CHUNK_SIZE = 64 * 1024

_NO_ELEMENTS = expat.errors.codes[expat.errors.XML_ERROR_NO_ELEMENTS]


class TokenKind(Enum):
    OPEN = "open"
    CLOSE = "close"
    TEXT = "text"
    END = "end"


@dataclass(frozen=True)
class Token:
    """A structural event. ``value`` is the local element name or the text."""

    kind: TokenKind
    value: str = ""
    depth: int = 0


def local_name(tag: str) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` qualifier from *tag*."""
    if tag.startswith("{"):
        tag = tag.partition("}")[2]
    return tag.rpartition(":")[2]


class ElementTokenizer:
    """Iterator of :class:`Token` over one XML document.

    *source* may be ``bytes``, a binary file object or any iterable of byte
    chunks. The root element has depth 1. Structural violations raise
    :class:`MalformedXmlError`; tokens produced before the violation are
    still valid.
    """

    def __init__(
        self,
        source: ByteSource,
        location: Optional[str] = None,
        *,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.location = location
        self.depth = 0
        self._source = source
        self._chunk_size = chunk_size
        self._seen_element = False
        self._tokens = self._generate()

    def __iter__(self) -> "ElementTokenizer":
        return self

    def __next__(self) -> Token:
        token = next(self._tokens)
        if token.kind is TokenKind.OPEN:
            self.depth = token.depth
        elif token.kind is TokenKind.CLOSE:
            self.depth = token.depth - 1
        return token

    def skip_element(self) -> None:
        """Discard the subtree of the element opened by the last token."""
        target = self.depth
        for token in self:
            if token.kind is TokenKind.CLOSE and token.depth == target:
                return

    def _chunks(self) -> Iterator[bytes]:
        source = self._source
        if isinstance(source, (bytes, bytearray)):
            for start in range(0, len(source), self._chunk_size):
                yield bytes(source[start : start + self._chunk_size])
        elif hasattr(source, "read"):
            while True:
                chunk = source.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        else:
            yield from source

    def _generate(self) -> Iterator[Token]:
        parser = ET.XMLPullParser(events=("start", "end"))
        # Each frame is [open element, its last child still awaiting its tail].
        frames: List[list] = []
        try:
            for chunk in self._chunks():
                parser.feed(chunk)
                yield from self._translate(parser.read_events(), frames)
            try:
                parser.close()
            except ET.ParseError as exc:
                # Empty input has no root to classify, it is not malformed.
                if self._seen_element or exc.code != _NO_ELEMENTS:
                    raise
            else:
                yield from self._translate(parser.read_events(), frames)
        except ET.ParseError as exc:
            raise MalformedXmlError(f"Malformed XML: {exc}", self.location) from exc
        yield Token(TokenKind.END)

    def _translate(self, events, frames: List[list]) -> Iterator[Token]:
        for event, element in events:
            if event == "start":
                if frames:
                    text = _pending_text(frames[-1])
                    frames[-1][1] = element
                    if text:
                        yield Token(TokenKind.TEXT, text, len(frames))
                self._seen_element = True
                frames.append([element, None])
                yield Token(TokenKind.OPEN, local_name(element.tag), len(frames))
            else:
                depth = len(frames)
                text = _pending_text(frames.pop())
                if text:
                    yield Token(TokenKind.TEXT, text, depth)
                yield Token(TokenKind.CLOSE, local_name(element.tag), depth)


def _pending_text(frame: list) -> Optional[str]:
    """Text seen inside *frame*'s element since its last token.

    Detaches the previous child once its tail has been read.
    """
    element, child = frame
    if child is None:
        return element.text
    element.remove(child)
    return child.tail
