"""In-memory cache of scraped link metadata.

One entry per URL. The entry is created as an empty placeholder the
moment the URL is first requested and filled in once, when its document
has been fetched and scanned. Entries live for the lifetime of the
process and are never re-fetched, even if the fetch failed.

Extraction is best-effort pattern matching over the raw document, not
HTML parsing: tags split across lines, reordered attributes and entity
encoded values are not recognised.
"""

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from typing import Optional

import httpx

from snoofeed.config import Settings, get_settings
from snoofeed.models.schemas import LinkMetadata, LinkMetadataStatus

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title>(.*?)</title>")
_DESCRIPTION_TAG_RE = re.compile(r'<meta name="description" content=".*?">')
_OG_IMAGE_TAG_RE = re.compile(r'<meta property="og:image" content=".*?">')
_CONTENT_ATTR_RE = re.compile(r'content="(.*?)"')


@dataclass
class ExtractedMetadata:
    """Values pulled out of a fetched document.

    Attributes:
        title: Text of the first ``<title>`` element, or "".
        description: ``content`` of the first description meta tag, or "".
        image_url: ``content`` of the first ``og:image`` meta tag, or None.
    """

    title: str = ""
    description: str = ""
    image_url: Optional[str] = None


def _meta_content(tag_re: re.Pattern, document: str) -> Optional[str]:
    tag = tag_re.search(document)
    if tag is None:
        return None
    content = _CONTENT_ATTR_RE.search(tag.group(0))
    return content.group(1) if content else None


def extract_metadata(document: str) -> ExtractedMetadata:
    """Scan a document for its title, description and preview image.

    Args:
        document: Raw document text.

    Returns:
        ExtractedMetadata with the first match of each pattern.
    """
    title = _TITLE_RE.search(document)
    return ExtractedMetadata(
        title=title.group(1) if title else "",
        description=_meta_content(_DESCRIPTION_TAG_RE, document) or "",
        image_url=_meta_content(_OG_IMAGE_TAG_RE, document),
    )


def site_name(url: str) -> str:
    """Host of ``url`` without a leading ``www.``, or "" if it has none."""
    try:
        host = httpx.URL(url).host
    except httpx.InvalidURL:
        return ""
    return host.removeprefix("www.")


class LinkMetadataCache:
    """Per-URL link metadata with at most one fetch per URL.

    The check-then-insert step in ``resolve`` and the completion write
    both run under one lock, so concurrent callers for the same URL
    share a single fetch. Readers get copies, never the live entry.
    """

    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize an empty cache.

        Args:
            http: Client used to fetch documents. Created from settings
                when omitted.
            settings: Application settings. Defaults to get_settings().
        """
        settings = settings or get_settings()
        self._entries: dict[str, LinkMetadata] = {}
        self._lock = threading.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=settings.SNOOFEED_HTTP_TIMEOUT,
            follow_redirects=True,
        )

    def resolve(self, url: str) -> Optional[asyncio.Task]:
        """Request metadata for ``url`` without waiting for it.

        Must be called from a running event loop.

        Args:
            url: The link to preview.

        Returns:
            The spawned fetch task, or None when an entry for ``url``
            already exists (pending or complete) and no fetch was issued.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if url in self._entries:
                logger.debug(f"Link metadata for '{url}' already requested")
                return None
            self._entries[url] = LinkMetadata(url=url)

        task = loop.create_task(self._fetch(url))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._log_failure)
        return task

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        """Log an unexpected error from a finished fetch task."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Link metadata fetch failed unexpectedly: {exc!r}",
                exc_info=exc,
            )

    async def _fetch(self, url: str) -> None:
        """Fetch and scan the document, then fill in the placeholder.

        Failures leave the placeholder as it is.
        """
        try:
            response = await self._http.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Could not fetch link metadata for '{url}': {e}")
            return

        try:
            document = response.content.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Document at '{url}' is not UTF-8 text, keeping placeholder")
            return

        extracted = extract_metadata(document)
        with self._lock:
            entry = self._entries[url]
            entry.title = extracted.title or url
            entry.description = extracted.description
            entry.image_url = extracted.image_url
            entry.site_name = site_name(url)
        logger.debug(f"Resolved link metadata for '{url}'")

    def lookup(self, url: str) -> Optional[LinkMetadata]:
        """Return a copy of the entry for ``url``, or None if never requested."""
        with self._lock:
            entry = self._entries.get(url)
            return entry.model_copy() if entry is not None else None

    def status(self, url: str) -> LinkMetadataStatus:
        """Report whether ``url`` is unrequested, pending or resolved.

        A completed extraction always sets a non-empty title, so an entry
        with an empty title is still a placeholder.
        """
        entry = self.lookup(url)
        if entry is None:
            return LinkMetadataStatus.NOT_REQUESTED
        if not entry.title:
            return LinkMetadataStatus.PENDING
        return LinkMetadataStatus.RESOLVED

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def wait_idle(self) -> None:
        """Wait until every fetch started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Close the HTTP client if this cache created it."""
        if self._owns_http:
            await self._http.aclose()
