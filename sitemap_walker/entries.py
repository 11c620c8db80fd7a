"""Typed records extracted from sitemap documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dateutil.parser import isoparse


class DocumentKind(Enum):
    """Which of the two sitemap shapes a document has, keyed by root tag."""

    PAGE_LIST = "urlset"
    INDEX_LIST = "sitemapindex"


class ChangeFrequency(Enum):
    """Values allowed in ``<changefreq>``, plus ``UNKNOWN`` for anything else."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, text: str) -> "ChangeFrequency":
        """Case-insensitive lookup; unrecognized text maps to ``UNKNOWN``."""
        value = text.strip().lower()
        if value == cls.UNKNOWN.value:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


def parse_last_modified(text: Optional[str]) -> Optional[datetime]:
    """Parse a W3C datetime (``2005``, ``2005-01-01``, ``2005-01-01T10:00+01:00``).

    Returns ``None`` instead of raising when *text* is missing or unparseable.
    """
    if not text:
        return None
    try:
        return isoparse(text)
    except (ValueError, OverflowError):
        return None


@dataclass
class SitemapEntry:
    """One ``<url>`` record from a ``urlset``.

    ``raw`` holds the verbatim text of any field that failed strict parsing,
    keyed by element name (``changefreq``, ``priority``, ``lastmod``).
    """

    location: str
    last_modified: Optional[str] = None
    change_frequency: Optional[ChangeFrequency] = None
    priority: Optional[float] = None
    raw: Dict[str, str] = field(default_factory=dict)

    @property
    def last_modified_datetime(self) -> Optional[datetime]:
        return parse_last_modified(self.last_modified)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "loc": self.location,
            "lastmod": self.last_modified,
            "changefreq": (
                self.change_frequency.value if self.change_frequency else None
            ),
            "priority": self.priority,
        }
        if self.raw:
            data["raw"] = dict(self.raw)
        return data


@dataclass
class SitemapIndexEntry:
    """One ``<sitemap>`` pointer from a ``sitemapindex``."""

    location: str
    last_modified: Optional[str] = None

    @property
    def last_modified_datetime(self) -> Optional[datetime]:
        return parse_last_modified(self.last_modified)
