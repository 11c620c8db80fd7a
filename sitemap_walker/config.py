"""Traversal configuration.

Defaults can be overridden through environment variables, optionally set in
a ``.env`` file in the working directory:

```env
# .env
SITEMAP_FAILURE_POLICY=abort
SITEMAP_MAX_DEPTH=3
SITEMAP_MAX_DOCUMENTS=500
```

An empty ``SITEMAP_MAX_DEPTH`` or ``SITEMAP_MAX_DOCUMENTS`` disables that cap.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from dotenv import load_dotenv

from .errors import RecordError

load_dotenv()

DEFAULT_MAX_DEPTH = 5
# sitemaps.org allows at most 50,000 sitemaps per index file
DEFAULT_MAX_DOCUMENTS = 50_000


class FailurePolicy(Enum):
    """What to do when one sitemap document cannot be fetched or parsed."""

    SKIP_AND_CONTINUE = "skip"
    ABORT_ALL = "abort"


@dataclass
class TraversalConfig:
    """Configuration for a ``SitemapTraverser``.

    ``max_depth`` counts index levels below the root document (the root is
    depth 0). ``max_documents`` caps how many documents are fetched. ``None``
    disables either cap.
    """

    failure_policy: Union[FailurePolicy, str] = FailurePolicy.SKIP_AND_CONTINUE
    max_depth: Optional[int] = DEFAULT_MAX_DEPTH
    max_documents: Optional[int] = DEFAULT_MAX_DOCUMENTS
    on_record_error: Optional[Callable[[RecordError], None]] = None

    def __post_init__(self):
        if not isinstance(self.failure_policy, FailurePolicy):
            self.failure_policy = FailurePolicy(str(self.failure_policy).lower())
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_documents is not None and self.max_documents < 1:
            raise ValueError(f"max_documents must be >= 1, got {self.max_documents}")

    @property
    def abort_on_error(self) -> bool:
        return self.failure_policy is FailurePolicy.ABORT_ALL

    @classmethod
    def from_env(cls, **overrides: Any) -> "TraversalConfig":
        """Build a config from ``SITEMAP_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        values: dict = {
            "failure_policy": os.getenv(
                "SITEMAP_FAILURE_POLICY", FailurePolicy.SKIP_AND_CONTINUE.value
            ),
            "max_depth": _optional_int("SITEMAP_MAX_DEPTH", DEFAULT_MAX_DEPTH),
            "max_documents": _optional_int("SITEMAP_MAX_DOCUMENTS", DEFAULT_MAX_DOCUMENTS),
        }
        values.update(overrides)
        return cls(**values)


def _optional_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
