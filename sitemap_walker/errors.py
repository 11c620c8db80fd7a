"""Error types raised while fetching, parsing and traversing sitemaps.

The hierarchy mirrors how far a failure reaches:

* ``RecordError`` – one ``<url>``/``<sitemap>`` record is dropped, the rest of
  the document is still parsed.
* ``DocumentError`` – the whole document (and the subtree it roots) is
  abandoned; sibling documents are unaffected.
* ``FetchError`` – the byte source could not supply the document.
* ``TraversalLimitError`` – a configured cap was hit; traversal stops.
"""

from __future__ import annotations

from typing import Optional


class SitemapError(Exception):
    """Base class for every error this package reports."""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location:
            return f"{self.message} ({self.location})"
        return self.message


class DocumentError(SitemapError):
    """A single sitemap document could not be used."""


class MalformedXmlError(DocumentError):
    """The document is not well-formed XML (truncated, mismatched, bad encoding)."""


class UnrecognizedDocumentError(DocumentError):
    """The root element is neither ``urlset`` nor ``sitemapindex``."""

    def __init__(
        self,
        message: str,
        location: Optional[str] = None,
        root_name: Optional[str] = None,
    ):
        super().__init__(message, location)
        self.root_name = root_name


class CyclicSitemapError(DocumentError):
    """A sitemap index points back at one of its own ancestors."""


class RecordError(SitemapError):
    """A single record inside a document was dropped."""


class IncompleteRecordError(RecordError):
    """A record closed without the required ``<loc>``."""


class DuplicateLocationError(RecordError):
    """A record carried more than one ``<loc>``, so its location is ambiguous."""


class FetchError(SitemapError):
    """The byte source failed to supply a document."""


class TraversalLimitError(SitemapError):
    """The configured depth or document cap was exceeded."""
