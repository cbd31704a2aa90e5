"""API routes: JSON endpoints consumed by the rendering layer."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from snoofeed.config import get_settings
from snoofeed.models.schemas import DEFAULT_SUBREDDITS
from snoofeed.services.auth import RedditAuthManager
from snoofeed.services.comment_tree import flatten_comments
from snoofeed.services.feed_store import FeedStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_feed_store(request: Request) -> FeedStore:
    """FastAPI dependency returning the application's FeedStore."""
    return request.app.state.feed_store


def get_auth_manager(request: Request) -> RedditAuthManager:
    """FastAPI dependency returning the application's RedditAuthManager."""
    return request.app.state.auth_manager


def _bearer_token(
    authorization: Optional[str], auth: RedditAuthManager
) -> Optional[str]:
    """Token from an ``Authorization: Bearer`` header, else the signed-in one."""
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return auth.access_token or None


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        {"detail": "Sign in to Reddit first."}, status_code=401
    )


def _snapshot_response(store: FeedStore) -> JSONResponse:
    """Store state as JSON, with the comment tree flattened depth-first."""
    snapshot = store.snapshot()
    body = snapshot.model_dump(mode="json", exclude={"comments"})
    body["comments"] = flatten_comments(snapshot.comments)
    return JSONResponse(body)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    settings = get_settings()
    return {"status": "ok", "version": settings.SNOOFEED_VERSION}


@router.get("/subreddits")
async def list_subreddits() -> list[dict]:
    """Subreddits offered in the picker."""
    return [sr.model_dump() for sr in DEFAULT_SUBREDDITS]


@router.get("/state")
async def get_state(store: FeedStore = Depends(get_feed_store)) -> JSONResponse:
    """Current posts, comments, loading flag and error without fetching."""
    return _snapshot_response(store)


@router.get("/feed/{subreddit}")
async def get_feed(
    subreddit: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    authorization: Optional[str] = Header(None),
    store: FeedStore = Depends(get_feed_store),
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Fetch a subreddit's hot posts and return the resulting state.

    A failed fetch is reported in ``error_message``; the previously
    published posts are returned alongside it.

    Args:
        subreddit: Subreddit display name.
        limit: Number of posts (defaults to SNOOFEED_FEED_LIMIT).
        authorization: Optional ``Bearer <token>`` header.
    """
    token = _bearer_token(authorization, auth)
    if token is None:
        return _unauthorized()

    await store.fetch_feed(
        subreddit, token, limit or get_settings().SNOOFEED_FEED_LIMIT
    )
    return _snapshot_response(store)


@router.get("/thread/{subreddit}/{post_id}")
async def get_thread(
    subreddit: str,
    post_id: str,
    authorization: Optional[str] = Header(None),
    store: FeedStore = Depends(get_feed_store),
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Fetch a post's comment tree and return the resulting state."""
    token = _bearer_token(authorization, auth)
    if token is None:
        return _unauthorized()

    await store.fetch_thread(post_id, subreddit, token)
    return _snapshot_response(store)


@router.get("/link-metadata")
async def get_link_metadata(
    url: str = Query(...),
    store: FeedStore = Depends(get_feed_store),
) -> JSONResponse:
    """Look up cached link metadata without triggering a fetch."""
    cache = store.metadata_cache
    entry = cache.lookup(url)
    return JSONResponse({
        "status": cache.status(url).value,
        "metadata": entry.model_dump() if entry is not None else None,
    })


@router.post("/link-metadata", status_code=202)
async def request_link_metadata(
    url: str = Query(...),
    authorization: Optional[str] = Header(None),
    store: FeedStore = Depends(get_feed_store),
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Request metadata for a URL; returns at once with the cache status.

    The server fetches the URL itself, so only signed-in callers may ask.
    """
    if _bearer_token(authorization, auth) is None:
        return _unauthorized()

    cache = store.metadata_cache
    started = cache.resolve(url) is not None
    return JSONResponse(
        {"status": cache.status(url).value, "started": started},
        status_code=202,
    )


@router.get("/auth/url")
async def get_authorize_url(
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Return the Reddit authorize URL for the sign-in web view."""
    try:
        return JSONResponse({"url": auth.authorize_url()})
    except ValueError as e:
        return JSONResponse({"detail": str(e)}, status_code=503)


@router.get("/auth/callback")
async def auth_callback(
    code: str = Query(...),
    store: FeedStore = Depends(get_feed_store),
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> JSONResponse:
    """Exchange the redirect's code for a token and look up the username."""
    token = await run_in_threadpool(auth.exchange_code, code)
    if token is None:
        return JSONResponse({"authenticated": False}, status_code=401)

    auth.username = await store.reddit_client.get_username(token) or ""
    return JSONResponse({"authenticated": True, "username": auth.username})


@router.post("/auth/sign-out")
async def sign_out(
    auth: RedditAuthManager = Depends(get_auth_manager),
) -> dict:
    """Forget the current token."""
    auth.sign_out()
    return {"authenticated": False}
