"""Depth-first flattening of sitemap index trees into one lazy sequence.

The traversal itself is a generator that suspends whenever it needs the bytes
of a document, yielding a fetch request. :meth:`SitemapTraverser.iterate`
answers those requests with a blocking fetcher, :meth:`SitemapTraverser.aiterate`
awaits them, so the same traversal serves both kinds of caller.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import (
    AsyncIterator,
    FrozenSet,
    Generator,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Union,
)

from .config import TraversalConfig
from .entries import DocumentKind, SitemapEntry
from .errors import (
    CyclicSitemapError,
    DocumentError,
    FetchError,
    RecordError,
    SitemapError,
    TraversalLimitError,
)
from .fetcher import SitemapFetcher, is_local_location
from .logging_config import get_logger
from .parser import SitemapParser

logger = get_logger("traversal")


@dataclass
class TraversalError:
    """Marker placed in the output where a document's subtree failed.

    ``fatal`` is true when the traversal stops after this item.
    """

    location: str
    error: SitemapError
    depth: int = 0
    fatal: bool = False

    def __str__(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass
class TraversalStats:
    """Counters for the most recent traversal."""

    documents: int = 0
    entries: int = 0
    record_errors: int = 0
    errors: int = 0


class _Pending(NamedTuple):
    location: str
    depth: int
    ancestors: FrozenSet[str]
    # False for children of a remote document
    local_allowed: bool = True


class _FetchRequest(NamedTuple):
    location: str


TraversalItem = Union[SitemapEntry, TraversalError]
_Walk = Generator[Union[TraversalItem, _FetchRequest], Optional[bytes], None]


class SitemapTraverser:
    """Yields every page entry reachable from *root_location*, depth-first.

    Supports dependency injection for the fetcher and parser, so tests can pass
    lightweight mocks instead of patching at the module level:

    >>> mock_fetcher = Mock(fetch=lambda location: xml_bytes)
    >>> traverser = SitemapTraverser(root, fetcher=mock_fetcher)

    A fetcher is any object with ``fetch(location)`` returning ``bytes`` (or,
    for :meth:`aiterate`, an awaitable of ``bytes``) and raising
    :class:`FetchError` or ``OSError`` on failure.
    """

    def __init__(
        self,
        root_location: str,
        config: Optional[TraversalConfig] = None,
        *,
        fetcher=None,
        parser: Optional[SitemapParser] = None,
    ):
        self.root_location = root_location
        self.config = config if config is not None else TraversalConfig()
        self.fetcher = fetcher if fetcher is not None else SitemapFetcher()
        self.parser = parser if parser is not None else SitemapParser()
        # An injected parser's own handler runs before ours
        self._parser_handler = self.parser.on_record_error
        self.parser.on_record_error = self._record_error
        self.stats = TraversalStats()

    def __iter__(self) -> Iterator[TraversalItem]:
        return self.iterate()

    def iterate(self) -> Iterator[TraversalItem]:
        """Run the traversal with a blocking fetcher."""
        walk = self._walk()
        try:
            item = next(walk)
            while True:
                if isinstance(item, _FetchRequest):
                    try:
                        data = self.fetcher.fetch(item.location)
                    except (SitemapError, OSError) as e:
                        item = walk.throw(e)
                    else:
                        item = walk.send(data)
                else:
                    yield item
                    item = next(walk)
        except StopIteration:
            return
        finally:
            walk.close()

    async def aiterate(self) -> AsyncIterator[TraversalItem]:
        """Run the traversal, awaiting the fetcher when it returns an awaitable."""
        walk = self._walk()
        try:
            item = next(walk)
            while True:
                if isinstance(item, _FetchRequest):
                    try:
                        data = self.fetcher.fetch(item.location)
                        if inspect.isawaitable(data):
                            data = await data
                    except (SitemapError, OSError) as e:
                        item = walk.throw(e)
                    else:
                        item = walk.send(data)
                else:
                    yield item
                    item = next(walk)
        except StopIteration:
            return
        finally:
            walk.close()

    # --- Core traversal ---
    def _walk(self) -> _Walk:
        self.stats = TraversalStats()
        stack: List[_Pending] = [_Pending(self.root_location, 0, frozenset())]

        while stack:
            pending = stack.pop()

            limit = self._limit_error(pending)
            if limit is not None:
                self.stats.errors += 1
                logger.error(
                    f"Stopping traversal: {limit.message}",
                    extra={"url": pending.location, "depth": pending.depth},
                )
                yield TraversalError(pending.location, limit, pending.depth, fatal=True)
                return

            try:
                if pending.location in pending.ancestors:
                    raise CyclicSitemapError(
                        "Sitemap index refers back to one of its ancestors",
                        pending.location,
                    )
                if not pending.local_allowed and is_local_location(pending.location):
                    raise FetchError(
                        "Local sitemap referenced from a remote document",
                        pending.location,
                    )

                self.stats.documents += 1
                try:
                    data = yield _FetchRequest(pending.location)
                except FetchError:
                    raise
                except (SitemapError, OSError) as e:
                    raise FetchError(
                        f"Error fetching sitemap: {e}", pending.location
                    ) from e

                document = self.parser.parse(data, pending.location)
                if document.kind is DocumentKind.PAGE_LIST:
                    for entry in document:
                        self.stats.entries += 1
                        yield entry
                else:
                    ancestors = pending.ancestors | {pending.location}
                    local_allowed = is_local_location(pending.location)
                    children = [
                        _Pending(
                            child.location, pending.depth + 1, ancestors, local_allowed
                        )
                        for child in document
                    ]
                    logger.info(
                        f"Sitemap index lists {len(children)} sitemaps",
                        extra={"url": pending.location, "depth": pending.depth},
                    )
                    # Reversed so the first child is popped next
                    stack.extend(reversed(children))

            except (DocumentError, FetchError) as e:
                failure = self._failure(pending, e)
                yield failure
                if failure.fatal:
                    return

    def _limit_error(self, pending: _Pending) -> Optional[TraversalLimitError]:
        config = self.config
        if config.max_depth is not None and pending.depth > config.max_depth:
            return TraversalLimitError(
                f"Maximum sitemap depth ({config.max_depth}) exceeded",
                pending.location,
            )
        if (
            config.max_documents is not None
            and self.stats.documents >= config.max_documents
        ):
            return TraversalLimitError(
                f"Maximum number of sitemap documents ({config.max_documents}) reached",
                pending.location,
            )
        return None

    def _failure(self, pending: _Pending, error: SitemapError) -> TraversalError:
        fatal = self.config.abort_on_error
        self.stats.errors += 1
        if fatal:
            logger.error(
                f"Aborting traversal: {error.message}",
                extra={"url": pending.location, "depth": pending.depth},
            )
        else:
            logger.warning(
                f"Skipping sitemap subtree: {error.message}",
                extra={"url": pending.location, "depth": pending.depth},
            )
        return TraversalError(pending.location, error, pending.depth, fatal=fatal)

    def _record_error(self, error: RecordError) -> None:
        if self._parser_handler is not None:
            self._parser_handler(error)
        self.stats.record_errors += 1
        if self.config.on_record_error is not None:
            self.config.on_record_error(error)


def iterate(
    root_location: str,
    config: Optional[TraversalConfig] = None,
    *,
    fetcher=None,
) -> Iterator[TraversalItem]:
    """Lazily yield every ``SitemapEntry`` under *root_location*, plus error markers."""
    return SitemapTraverser(root_location, config, fetcher=fetcher).iterate()
