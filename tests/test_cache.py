"""Unit tests for link metadata extraction and the metadata cache.

All HTTP calls go through httpx.MockTransport; no network access.
"""

import asyncio
import logging

import httpx
import pytest

from snoofeed.models.schemas import LinkMetadata, LinkMetadataStatus
from snoofeed.services.cache import LinkMetadataCache, extract_metadata, site_name

_ARTICLE = (
    "<html><head>"
    "<title>Rivers of the World</title>"
    '<meta name="description" content="A survey of great rivers.">'
    '<meta property="og:image" content="https://example.com/river.jpg">'
    "</head><body>Hello</body></html>"
)


class TestExtractMetadata:
    """Tests for the pattern-based extractor."""

    def test_all_fields(self) -> None:
        extracted = extract_metadata(_ARTICLE)
        assert extracted.title == "Rivers of the World"
        assert extracted.description == "A survey of great rivers."
        assert extracted.image_url == "https://example.com/river.jpg"

    def test_nothing_found(self) -> None:
        extracted = extract_metadata("<html><body>no head</body></html>")
        assert extracted.title == ""
        assert extracted.description == ""
        assert extracted.image_url is None

    def test_first_occurrence_wins(self) -> None:
        doc = "<title>First</title><title>Second</title>"
        assert extract_metadata(doc).title == "First"

    def test_case_sensitive(self) -> None:
        """Upper-case tags are not matched."""
        doc = '<TITLE>Shouty</TITLE><META NAME="description" CONTENT="x">'
        extracted = extract_metadata(doc)
        assert extracted.title == ""
        assert extracted.description == ""

    def test_multiline_title_not_matched(self) -> None:
        assert extract_metadata("<title>Line one\nline two</title>").title == ""

    def test_reordered_attributes_not_matched(self) -> None:
        doc = '<meta content="https://example.com/x.png" property="og:image">'
        assert extract_metadata(doc).image_url is None

    def test_entities_left_encoded(self) -> None:
        doc = "<title>Fish &amp; Chips</title>"
        assert extract_metadata(doc).title == "Fish &amp; Chips"


class TestSiteName:
    """Tests for site_name."""

    def test_strips_leading_www(self) -> None:
        assert site_name("https://www.example.com/page") == "example.com"

    def test_keeps_inner_www(self) -> None:
        assert site_name("https://news.www.example.com/") == "news.www.example.com"

    def test_no_www(self) -> None:
        assert site_name("https://blog.example.org/post?x=1") == "blog.example.org"


class TestResolve:
    """Tests for LinkMetadataCache.resolve and the read surface."""

    async def test_resolves_and_fills_entry(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://www.example.com/rivers"
        page_routes[url] = httpx.Response(200, text=_ARTICLE)

        task = metadata_cache.resolve(url)
        assert task is not None
        await task

        entry = metadata_cache.lookup(url)
        assert entry == LinkMetadata(
            url=url,
            title="Rivers of the World",
            description="A survey of great rivers.",
            image_url="https://example.com/river.jpg",
            site_name="example.com",
        )
        assert metadata_cache.status(url) == LinkMetadataStatus.RESOLVED

    async def test_placeholder_before_completion(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/rivers"
        page_routes[url] = httpx.Response(200, text=_ARTICLE)

        assert metadata_cache.status(url) == LinkMetadataStatus.NOT_REQUESTED
        assert metadata_cache.lookup(url) is None

        metadata_cache.resolve(url)

        assert url in metadata_cache
        assert metadata_cache.status(url) == LinkMetadataStatus.PENDING
        assert metadata_cache.lookup(url) == LinkMetadata(url=url)
        await metadata_cache.wait_idle()
        assert metadata_cache.status(url) == LinkMetadataStatus.RESOLVED

    async def test_title_falls_back_to_url(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/bare"
        page_routes[url] = httpx.Response(200, text="<html><body>bare</body></html>")

        await metadata_cache.resolve(url)

        entry = metadata_cache.lookup(url)
        assert entry.title == url
        assert entry.description == ""
        assert entry.image_url is None
        assert entry.site_name == "example.com"

    async def test_duplicate_requests_coalesce(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        """Two requests before the first completes issue one fetch."""
        url = "https://example.com/rivers"
        page_routes[url] = httpx.Response(200, text=_ARTICLE)

        first = metadata_cache.resolve(url)
        second = metadata_cache.resolve(url)
        await metadata_cache.wait_idle()

        assert first is not None
        assert second is None
        assert metadata_cache.fetched == [url]
        assert len(metadata_cache) == 1

    async def test_completed_entry_never_refetched(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/rivers"
        page_routes[url] = httpx.Response(200, text=_ARTICLE)

        await metadata_cache.resolve(url)
        assert metadata_cache.resolve(url) is None
        await metadata_cache.wait_idle()

        assert metadata_cache.fetched == [url]

    async def test_concurrent_callers_while_fetch_in_flight(self) -> None:
        """Callers arriving while the fetch is blocked share it."""
        started = asyncio.Event()
        release = asyncio.Event()
        fetch_count = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal fetch_count
            fetch_count += 1
            started.set()
            await release.wait()
            return httpx.Response(200, text=_ARTICLE)

        cache = LinkMetadataCache(
            http=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        url = "https://example.com/slow"

        first = cache.resolve(url)
        await started.wait()

        async def late_caller():
            return cache.resolve(url)

        late = await asyncio.gather(*(late_caller() for _ in range(10)))
        assert cache.status(url) == LinkMetadataStatus.PENDING
        release.set()
        await first

        assert late == [None] * 10
        assert fetch_count == 1
        assert len(cache) == 1
        assert cache.lookup(url).title == "Rivers of the World"

    async def test_transport_failure_keeps_placeholder(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/down"
        page_routes[url] = httpx.ConnectError("connection refused")

        await metadata_cache.resolve(url)

        assert metadata_cache.lookup(url) == LinkMetadata(url=url)
        assert metadata_cache.status(url) == LinkMetadataStatus.PENDING
        # Failure is not retried
        assert metadata_cache.resolve(url) is None

    async def test_unexpected_error_is_logged(
        self, metadata_cache: LinkMetadataCache, page_routes: dict, caplog
    ) -> None:
        url = "https://example.com/broken"
        page_routes[url] = RuntimeError("handler blew up")

        with caplog.at_level(logging.ERROR, logger="snoofeed.services.cache"):
            metadata_cache.resolve(url)
            await metadata_cache.wait_idle()
            await asyncio.sleep(0)

        assert "handler blew up" in caplog.text
        assert metadata_cache.status(url) == LinkMetadataStatus.PENDING

    async def test_non_text_body_keeps_placeholder(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/image.bin"
        page_routes[url] = httpx.Response(200, content=b"\xff\xd8\xff\xe0\x00\x10JFIF\xff")

        await metadata_cache.resolve(url)

        assert metadata_cache.lookup(url) == LinkMetadata(url=url)

    async def test_error_status_body_still_scanned(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        """The HTTP status is not inspected."""
        url = "https://example.com/gone"
        page_routes[url] = httpx.Response(410, text="<title>Gone</title>")

        await metadata_cache.resolve(url)

        assert metadata_cache.lookup(url).title == "Gone"

    async def test_lookup_returns_copy(
        self, metadata_cache: LinkMetadataCache, page_routes: dict
    ) -> None:
        url = "https://example.com/rivers"
        page_routes[url] = httpx.Response(200, text=_ARTICLE)
        await metadata_cache.resolve(url)

        copy = metadata_cache.lookup(url)
        copy.title = "edited by a reader"

        assert metadata_cache.lookup(url).title == "Rivers of the World"

    def test_resolve_requires_running_loop(self, metadata_cache: LinkMetadataCache) -> None:
        with pytest.raises(RuntimeError):
            metadata_cache.resolve("https://example.com/")
        assert len(metadata_cache) == 0
