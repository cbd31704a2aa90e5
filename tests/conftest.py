"""Shared test fixtures for Snoofeed."""

import httpx
import pytest

from snoofeed import create_app
from snoofeed.config import Settings
from snoofeed.services.auth import RedditAuthManager
from snoofeed.services.cache import LinkMetadataCache
from snoofeed.services.feed_store import FeedStore
from snoofeed.services.reddit_client import RedditClient


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a dummy client id and a fake API base."""
    return Settings(
        REDDIT_CLIENT_ID="test_client_id",
        REDDIT_API_BASE="https://oauth.reddit.test",
    )


@pytest.fixture
def api_routes() -> dict:
    """Mutable map of request path -> httpx.Response for the fake API."""
    return {}


@pytest.fixture
def reddit_client(test_settings: Settings, api_routes: dict) -> RedditClient:
    """RedditClient whose requests are answered from ``api_routes``.

    Unknown paths get a 404. Requests are recorded on ``client.requests``.
    """
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        response = api_routes.get(request.url.path)
        if isinstance(response, Exception):
            raise response
        return response or httpx.Response(404, json={"error": 404})

    http = httpx.AsyncClient(
        base_url=test_settings.REDDIT_API_BASE,
        transport=httpx.MockTransport(handler),
    )
    client = RedditClient(test_settings, http=http)
    client.requests = requests
    return client


@pytest.fixture
def page_routes() -> dict:
    """Mutable map of absolute URL -> httpx.Response for link documents."""
    return {}


@pytest.fixture
def metadata_cache(test_settings: Settings, page_routes: dict) -> LinkMetadataCache:
    """LinkMetadataCache whose fetches are answered from ``page_routes``."""
    fetched: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        fetched.append(str(request.url))
        response = page_routes.get(str(request.url))
        if isinstance(response, Exception):
            raise response
        return response or httpx.Response(404, text="<title>Not Found</title>")

    cache = LinkMetadataCache(
        http=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        settings=test_settings,
    )
    cache.fetched = fetched
    return cache


@pytest.fixture
def feed_store(
    reddit_client: RedditClient, metadata_cache: LinkMetadataCache
) -> FeedStore:
    """FeedStore wired to the fake API and fake link documents."""
    return FeedStore(reddit_client, metadata_cache)


@pytest.fixture
def test_app(test_settings: Settings, feed_store: FeedStore):
    """Create a fresh Snoofeed application for testing."""
    return create_app(
        settings=test_settings,
        feed_store=feed_store,
        auth_manager=RedditAuthManager(test_settings),
    )


@pytest.fixture
async def test_client(test_app):
    """Async HTTP test client backed by the test app."""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
