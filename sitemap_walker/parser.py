"""Module for classifying sitemap documents and extracting their records."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Union

from .entries import (
    ChangeFrequency,
    DocumentKind,
    SitemapEntry,
    SitemapIndexEntry,
    parse_last_modified,
)
from .errors import (
    DuplicateLocationError,
    IncompleteRecordError,
    RecordError,
    UnrecognizedDocumentError,
)
from .logging_config import get_logger
from .tokenizer import ByteSource, ElementTokenizer, Token, TokenKind

logger = get_logger("parser")

# Depth of <url>/<sitemap> records and of their fields (the root is 1).
RECORD_DEPTH = 2
FIELD_DEPTH = 3

# Plain decimal notation only: no exponent, underscores, nan or inf
_PRIORITY_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")

Entry = Union[SitemapEntry, SitemapIndexEntry]
RecordErrorHandler = Callable[[RecordError], None]


def _build_page_entry(fields: Dict[str, str], location: Optional[str]) -> SitemapEntry:
    """Build a ``SitemapEntry``, keeping the raw text of lenient fields."""
    entry = SitemapEntry(location=fields["loc"], last_modified=fields.get("lastmod"))
    context = {"url": location}

    if entry.last_modified and parse_last_modified(entry.last_modified) is None:
        entry.raw["lastmod"] = entry.last_modified
        logger.warning(
            f"<lastmod> is not a W3C datetime: {entry.last_modified!r}", extra=context
        )

    changefreq = fields.get("changefreq")
    if changefreq is not None:
        entry.change_frequency = ChangeFrequency.from_text(changefreq)
        if entry.change_frequency is ChangeFrequency.UNKNOWN:
            entry.raw["changefreq"] = changefreq
            logger.warning(f"<changefreq> has invalid value: {changefreq!r}", extra=context)

    priority = fields.get("priority")
    if priority is not None:
        if _PRIORITY_RE.fullmatch(priority):
            entry.priority = float(priority)
            if not 0.0 <= entry.priority <= 1.0:
                logger.warning(f"<priority> {entry.priority} is out of range", extra=context)
        else:
            entry.raw["priority"] = priority
            logger.warning(
                f"<priority> has invalid format: {priority!r}. "
                "Expected a decimal number.",
                extra=context,
            )

    return entry


def _build_index_entry(
    fields: Dict[str, str], location: Optional[str]
) -> SitemapIndexEntry:
    return SitemapIndexEntry(location=fields["loc"], last_modified=fields.get("lastmod"))


@dataclass(frozen=True)
class RecordShape:
    """Field-mapping table for one document kind."""

    tag: str
    fields: FrozenSet[str]
    build: Callable[[Dict[str, str], Optional[str]], Entry]


RECORD_SHAPES = {
    DocumentKind.PAGE_LIST: RecordShape(
        "url",
        frozenset({"loc", "lastmod", "changefreq", "priority"}),
        _build_page_entry,
    ),
    DocumentKind.INDEX_LIST: RecordShape(
        "sitemap", frozenset({"loc", "lastmod"}), _build_index_entry
    ),
}


class EntryAccumulator:
    """State machine turning tokens of one document into records.

    States: awaiting a record (``_record is None``), inside a record
    (``_field is None``), inside a field. Only ``Open`` tokens for which
    :meth:`accepts` is true may be fed; the caller skips every other subtree.
    """

    def __init__(self, kind: DocumentKind, location: Optional[str] = None):
        self.kind = kind
        self.location = location
        self._shape = RECORD_SHAPES[kind]
        self._record: Optional[Dict[str, str]] = None
        self._field: Optional[str] = None
        self._text: List[str] = []
        self._ambiguous = False

    def accepts(self, token: Token) -> bool:
        """Whether the ``Open`` *token* starts a record or a known field."""
        if self._record is None:
            return token.depth == RECORD_DEPTH and token.value == self._shape.tag
        if self._field is None:
            return token.depth == FIELD_DEPTH and token.value in self._shape.fields
        return False

    def feed(self, token: Token) -> Optional[Entry]:
        """Advance on *token*; return a record when one is complete.

        Raises a :class:`RecordError` when a record closes in an unusable
        state. The accumulator is ready for the next record either way.
        """
        if token.kind is TokenKind.OPEN:
            if self._record is None:
                self._record = {}
                self._ambiguous = False
            else:
                self._field = token.value
                self._text = []
        elif token.kind is TokenKind.TEXT:
            if self._field is not None:
                self._text.append(token.value)
        elif token.kind is TokenKind.CLOSE:
            if self._field is not None and token.depth == FIELD_DEPTH:
                self._store(self._field, "".join(self._text).strip())
                self._field = None
                self._text = []
            elif self._record is not None and token.depth == RECORD_DEPTH:
                record, self._record = self._record, None
                return self._complete(record)
        return None

    def _store(self, name: str, text: str) -> None:
        if not text:
            return
        if name in self._record:
            if name == "loc":
                self._ambiguous = True
            else:
                logger.warning(
                    f"Multiple <{name}> in <{self._shape.tag}>, keeping the last one",
                    extra={"url": self.location},
                )
        self._record[name] = text

    def _complete(self, record: Dict[str, str]) -> Entry:
        tag = self._shape.tag
        if self._ambiguous:
            raise DuplicateLocationError(
                f"Multiple <loc> in <{tag}> ({record['loc']}), record dropped",
                self.location,
            )
        if "loc" not in record:
            raise IncompleteRecordError(
                f"<{tag}> without <loc>, record dropped", self.location
            )
        return self._shape.build(record, self.location)


@dataclass
class ParsedDocument:
    """A classified document whose records are produced lazily."""

    location: Optional[str]
    kind: DocumentKind
    entries: Iterator[Entry]

    def __iter__(self) -> Iterator[Entry]:
        return self.entries


class SitemapParser:
    """Classifies sitemap documents and streams their records.

    Record-local problems (missing or repeated ``<loc>``) are logged and passed
    to *on_record_error*; parsing continues with the next record.
    """

    def __init__(self, *, on_record_error: Optional[RecordErrorHandler] = None):
        self.on_record_error = on_record_error

    def classify(self, tokens: ElementTokenizer) -> DocumentKind:
        """Consume tokens up to the root element and map it to a ``DocumentKind``.

        Raises:
            UnrecognizedDocumentError: The root is neither ``urlset`` nor
                ``sitemapindex``, or the document has no root element.
            MalformedXmlError: The bytes before the root are not valid XML.
        """
        for token in tokens:
            if token.kind is TokenKind.OPEN:
                try:
                    return DocumentKind(token.value)
                except ValueError:
                    raise UnrecognizedDocumentError(
                        f"Expected <urlset> or <sitemapindex> but got <{token.value}>",
                        tokens.location,
                        root_name=token.value,
                    ) from None
        raise UnrecognizedDocumentError("Document has no root element", tokens.location)

    def parse(self, source: ByteSource, location: Optional[str] = None) -> ParsedDocument:
        """Classify *source* eagerly and return its records as a lazy iterator.

        ``MalformedXmlError`` may be raised by :meth:`classify` here, or later
        while the returned entries are consumed.
        """
        tokens = ElementTokenizer(source, location)
        kind = self.classify(tokens)
        logger.info(f"Document is a <{kind.value}>", extra={"url": location})
        return ParsedDocument(location, kind, self._iter_entries(tokens, kind))

    def _iter_entries(self, tokens: ElementTokenizer, kind: DocumentKind) -> Iterator[Entry]:
        accumulator = EntryAccumulator(kind, tokens.location)
        count = 0
        for token in tokens:
            if token.kind is TokenKind.OPEN and not accumulator.accepts(token):
                tokens.skip_element()
                continue
            try:
                entry = accumulator.feed(token)
            except RecordError as e:
                self._report(e)
                continue
            if entry is not None:
                count += 1
                yield entry
        logger.info(
            f"Parsed <{kind.value}> with {count} entries", extra={"url": tokens.location}
        )

    def _report(self, error: RecordError) -> None:
        logger.warning(error.message, extra={"url": error.location})
        if self.on_record_error is not None:
            self.on_record_error(error)
