"""Module for fetching sitemap bytes with polite defaults.

This is the default byte source used by the traverser:

* ``http(s)://`` locations are requested with a custom "User‑Agent" header
  that explains the purpose of the tool and includes a contact e‑mail address
* Throttling so we make **≤ 1 request every *N* seconds** (default 2s) to avoid
  overwhelming the origin or triggering bot mitigation (e.g. Cloudflare).
* ``file://`` URLs and plain filesystem paths are read from disk.

The contact e‑mail and request interval can be configured through a ``.env``
file placed in the project root:

```env
# .env
EMAIL=webmaster@example.com
REQUEST_INTERVAL_SECONDS=2.5
```

The variables are loaded via *python‑dotenv*. Decompression is left to the
caller: ``.gz`` sitemaps are returned exactly as served.
"""

from __future__ import annotations

import os
import time
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from dotenv import load_dotenv

from .errors import FetchError
from .logging_config import get_logger

logger = get_logger("fetcher")

# --- Environment configuration ------------------------------------------------

# Load variables from .env if present; silently ignore missing file
load_dotenv()

_DEFAULT_EMAIL = os.getenv("EMAIL", "contact@example.com")
_DEFAULT_USER_AGENT = f"Sitemap Walker (+{_DEFAULT_EMAIL})"
# Delay between requests in seconds (float allowed for sub‑second resolution)
_DEFAULT_REQUEST_INTERVAL = float(os.getenv("REQUEST_INTERVAL_SECONDS", "2"))

_HTTP_SCHEMES = ("http", "https")


def is_local_location(location: str) -> bool:
    """Whether *location* names a file on disk (``file://`` or a plain path)."""
    scheme = urlparse(location).scheme.lower()
    # No scheme, or a single letter that is really a Windows drive
    return scheme == "file" or len(scheme) <= 1


class SitemapFetcher:
    """Fetches sitemap documents politely (custom UA + throttling)."""

    def __init__(
        self,
        *,
        timeout: int = 30,
        user_agent: str | None = None,
        request_interval: float | None = None,
    ):
        """Create a new ``SitemapFetcher``.

        Parameters
        ----------
        timeout
            Maximum seconds to wait for an HTTP response.
        user_agent
            Custom *User‑Agent* header value. If *None*, a default string
            containing a contact e‑mail derived from the ``EMAIL`` env var is
            used.
        request_interval
            Minimum delay **in seconds** between consecutive HTTP requests made
            by this fetcher. Defaults to the ``REQUEST_INTERVAL_SECONDS`` env
            var or 2 seconds.
        """

        self.timeout = timeout
        self.user_agent = user_agent or _DEFAULT_USER_AGENT
        self.request_interval = (
            request_interval
            if request_interval is not None
            else _DEFAULT_REQUEST_INTERVAL
        )
        self._last_request_ts: float | None = None

        # Prepared headers dict reused across requests
        self._headers = {"User-Agent": self.user_agent}

    def _throttle(self) -> None:
        """Sleep as necessary to respect ``self.request_interval``."""
        now = time.monotonic()
        if self._last_request_ts is not None:
            elapsed = now - self._last_request_ts
            sleep_for = self.request_interval - elapsed
            if sleep_for > 0:
                time.sleep(sleep_for)
        self._last_request_ts = time.monotonic()

    def fetch(self, location: str) -> bytes:
        """Return the raw bytes of the sitemap at *location*.

        Raises
        ------
        FetchError
            The document could not be retrieved. The underlying ``requests``
            or ``OSError`` exception is chained as ``__cause__``.
        """
        parsed = urlparse(location)
        scheme = parsed.scheme.lower()

        if scheme in _HTTP_SCHEMES:
            return self._fetch_http(location)
        if scheme == "file":
            return self._read_file(url2pathname(parsed.path), location)
        if is_local_location(location):
            return self._read_file(location, location)
        raise FetchError(f"Unsupported location scheme {parsed.scheme!r}", location)

    def _fetch_http(self, url: str) -> bytes:
        # Throttle before making the network request
        self._throttle()

        logger.info("Requesting sitemap", extra={"url": url})
        try:
            resp = requests.get(url, timeout=self.timeout, headers=self._headers)
            resp.raise_for_status()  # Raise HTTPError for bad responses (4xx or 5xx)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Error fetching sitemap: {e}", extra={"url": url})
            raise FetchError(f"Error fetching sitemap: {e}", url) from e
        return resp.content

    def _read_file(self, path: str, location: str) -> bytes:
        logger.info("Reading sitemap file", extra={"url": location})
        try:
            with open(path, "rb") as fp:
                return fp.read()
        except OSError as e:
            logger.warning(f"Error reading sitemap file: {e}", extra={"url": location})
            raise FetchError(f"Error reading sitemap file: {e}", location) from e
