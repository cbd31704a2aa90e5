"""Snoofeed: Reddit feed, thread and link preview core."""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI

from snoofeed.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    feed_store=None,
    auth_manager=None,
) -> FastAPI:
    """Create and configure the Snoofeed application.

    Args:
        settings: Application settings. Defaults to get_settings().
        feed_store: Prebuilt FeedStore (tests inject one with mocked HTTP).
        auth_manager: Prebuilt RedditAuthManager.
    """
    settings = settings or get_settings()
    if settings.SNOOFEED_DEBUG:
        logging.basicConfig(level=logging.DEBUG)

    from snoofeed.services.auth import RedditAuthManager
    from snoofeed.services.cache import LinkMetadataCache
    from snoofeed.services.feed_store import FeedStore
    from snoofeed.services.reddit_client import RedditClient

    if feed_store is None:
        feed_store = FeedStore(
            RedditClient(settings), LinkMetadataCache(settings=settings)
        )
    if auth_manager is None:
        auth_manager = RedditAuthManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.feed_store.metadata_cache.aclose()
        await app.state.feed_store.reddit_client.aclose()

    app = FastAPI(
        title="Snoofeed",
        description="Reddit feeds, threads and link previews.",
        version=settings.SNOOFEED_VERSION,
        lifespan=lifespan,
    )
    app.state.feed_store = feed_store
    app.state.auth_manager = auth_manager

    from snoofeed.routes.api import router as api_router
    app.include_router(api_router, prefix="/api")

    logger.info("Snoofeed is ready.")
    return app
