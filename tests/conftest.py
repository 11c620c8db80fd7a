import codecs  # Import codecs for BOM
import logging
from types import SimpleNamespace

import pytest
import requests

from sitemap_walker.errors import FetchError

NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"


# Helper class for mocking requests.get
class MockResponse:
    def __init__(self, xml_data, status_code=200, encoding="utf-8"):
        self.text = xml_data  # Store as string for .text access
        # Encode based on the provided encoding
        if isinstance(xml_data, str):
            self.content = xml_data.encode(encoding)
        else:  # Assume bytes if not string (e.g., for BOM)
            self.content = xml_data
        self.status_code = status_code
        self.ok = 200 <= status_code < 300

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error")


def _urlset(*locations):
    urls = "".join(f"<url><loc>{loc}</loc></url>" for loc in locations)
    return f'<urlset xmlns="{NAMESPACE}">{urls}</urlset>'


def _sitemapindex(*locations):
    sitemaps = "".join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locations)
    return f'<sitemapindex xmlns="{NAMESPACE}">{sitemaps}</sitemapindex>'


class FakeSource:
    """In-memory byte source.

    Maps locations to XML text (or bytes), or to an exception to raise.
    Unknown locations fail with ``FetchError``.
    """

    def __init__(self, documents):
        self.documents = documents
        self.requested = []

    def fetch(self, location):
        self.requested.append(location)
        document = self.documents.get(location)
        if document is None:
            raise FetchError("Not found", location)
        if isinstance(document, Exception):
            raise document
        if isinstance(document, str):
            return document.encode("utf-8")
        return document


@pytest.fixture
def xml():
    """Builders for small sitemap documents."""
    return SimpleNamespace(urlset=_urlset, index=_sitemapindex)


@pytest.fixture
def fake_source():
    """Factory for ``FakeSource`` byte sources."""
    return FakeSource


@pytest.fixture
def no_throttle(monkeypatch):
    """Default fetchers created during the test do not sleep between requests."""
    monkeypatch.setattr("sitemap_walker.fetcher._DEFAULT_REQUEST_INTERVAL", 0.0)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by ``setup_logging`` (they hold captured streams)."""
    yield
    package_logger = logging.getLogger("sitemap_walker")
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


# Monkeypatch requests.get
@pytest.fixture
def patch_requests(monkeypatch):
    """Patches requests.get to return controlled responses or raise errors."""

    # Define BOM + XML content
    bom_xml_content = (
        codecs.BOM_UTF8
        + f"""<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="{NAMESPACE}">
   <url><loc>http://bom.com/page1</loc></url>
</urlset>""".encode(
            "utf-8"
        )
    )

    def fake_get(url, **kwargs):  # Accept **kwargs to handle 'timeout'
        if url == "http://error.com/sitemap.xml":
            raise requests.exceptions.RequestException("Network error")
        if url == "http://badxml.com/sitemap.xml":
            # Genuinely malformed XML
            return MockResponse("<root><unclosed-tag</root>")
        if url == "http://bom.com/sitemap.xml":
            # Raw bytes including BOM
            return MockResponse(bom_xml_content, status_code=200, encoding=None)
        if url == "http://notfound.com/sitemap.xml":  # Test 404
            return MockResponse("<error>Not Found</error>", status_code=404)
        if url == "http://feed.com/rss.xml":
            return MockResponse(
                "<rss version='2.0'><channel><title>News</title></channel></rss>"
            )
        if url == "http://mixed.com/index.xml":
            return MockResponse(
                _sitemapindex(
                    "http://error.com/sitemap.xml", "http://example.com/child.xml"
                )
            )

        if url == "http://example.com/index.xml":
            return MockResponse(
                f"""<sitemapindex xmlns="{NAMESPACE}">
                       <sitemap><loc>http://example.com/child.xml</loc></sitemap>
                   </sitemapindex>"""
            )
        if url == "http://example.com/child.xml":
            return MockResponse(
                f"""<urlset xmlns="{NAMESPACE}">
                       <url>
                         <loc>http://example.com/page1</loc>
                         <lastmod>2024-05-01</lastmod>
                         <changefreq>daily</changefreq>
                         <priority>0.8</priority>
                       </url>
                       <url><loc>http://example.com/page2</loc></url>
                   </urlset>"""
            )

        # Default fallback for unexpected URLs
        print(f"WARN: Unexpected URL requested in test: {url}")
        return MockResponse("<root/>", status_code=404)

    monkeypatch.setattr(requests, "get", fake_get)
