"""Main entry point for the sitemap walker command line tool."""

import argparse
import json
import sys
import time
from contextlib import closing
from typing import Iterable, Optional, TextIO

from .config import FailurePolicy, TraversalConfig
from .fetcher import SitemapFetcher
from .logging_config import setup_logging
from .traversal import SitemapTraverser, TraversalError, TraversalItem


def write_entries(
    items: Iterable[TraversalItem],
    out: TextIO,
    output_format: str = "text",
    limit: Optional[int] = None,
) -> bool:
    """Write page entries to *out* and report error markers on stderr.

    Returns True if the traversal stopped on a fatal error.
    """
    written = 0
    fatal = False
    for item in items:
        if isinstance(item, TraversalError):
            error = item.error
            print(
                f"Error: {item.location}: {type(error).__name__}: {error.message}",
                file=sys.stderr,
            )
            fatal = item.fatal
            continue

        if output_format == "jsonl":
            out.write(json.dumps(item.to_dict()) + "\n")
        else:
            out.write(item.location + "\n")
        written += 1

        if limit is not None and written >= limit:
            break
    return fatal


def main(argv=None):
    """Parses command-line arguments and runs the sitemap traversal."""
    parser = argparse.ArgumentParser(
        description="List every page URL published by a sitemap, following "
        "sitemap indexes depth-first."
    )
    parser.add_argument(
        "sitemap_url", help="The root sitemap URL (or file path) to start from."
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Path to the file where entries will be written (default: stdout).",
    )
    parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=None,
        help="Stop after this many page entries.",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum sitemap index nesting below the root "
        "(default: SITEMAP_MAX_DEPTH or 5).",
    )
    parser.add_argument(
        "--max-documents",
        type=int,
        default=None,
        help="Maximum number of sitemap documents to fetch "
        "(default: SITEMAP_MAX_DOCUMENTS or 50000).",
    )
    parser.add_argument(
        "--abort-on-error",
        action="store_true",
        help="Stop at the first sitemap that cannot be fetched or parsed.",
    )
    parser.add_argument(
        "--format",
        choices=("text", "jsonl"),
        default="text",
        help="One URL per line, or one JSON object per entry.",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=30,
        help="HTTP request timeout",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logging verbosity (logs go to stderr).",
    )

    args = parser.parse_args(argv)

    # --- Argument Validation ---
    if args.limit is not None and args.limit <= 0:
        print("Error: --limit must be a positive integer.", file=sys.stderr)
        sys.exit(1)

    setup_logging(args.log_level)

    overrides = {}
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.max_documents is not None:
        overrides["max_documents"] = args.max_documents
    if args.abort_on_error:
        overrides["failure_policy"] = FailurePolicy.ABORT_ALL

    try:
        config = TraversalConfig.from_env(**overrides)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    traverser = SitemapTraverser(
        args.sitemap_url, config, fetcher=SitemapFetcher(timeout=args.timeout)
    )

    start_time = time.time()
    try:
        with closing(traverser.iterate()) as items:
            if args.output:
                with open(args.output, "w", encoding="utf-8") as out:
                    fatal = write_entries(items, out, args.format, args.limit)
            else:
                fatal = write_entries(items, sys.stdout, args.format, args.limit)
    except IOError as e:
        print(f"An error occurred during processing: {e}", file=sys.stderr)
        sys.exit(1)

    stats = traverser.stats
    total_time = time.time() - start_time
    print(
        f"Finished in {total_time:.2f} seconds: {stats.entries} URLs from "
        f"{stats.documents} sitemaps, {stats.errors} errors, "
        f"{stats.record_errors} skipped records.",
        file=sys.stderr,
    )

    if fatal:
        sys.exit(1)


if __name__ == "__main__":
    main()
