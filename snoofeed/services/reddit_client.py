"""Async client for Reddit's OAuth JSON endpoints.

Returns listing children as plain JSON so the normalizer decides what to
keep. Transport and HTTP failures surface as ConnectionError, payloads
that do not have the expected listing shape as ValueError. Requests are
issued once: no retries, no backoff, no rate limiting.
"""

import logging
from typing import Any, Optional

import httpx

from snoofeed.config import Settings

logger = logging.getLogger(__name__)


def _listing_children(listing: Any) -> Optional[list]:
    """Return ``data.children`` of a listing object, or None if absent."""
    if not isinstance(listing, dict):
        return None
    data = listing.get("data")
    if not isinstance(data, dict):
        return None
    children = data.get("children")
    return children if isinstance(children, list) else None


class RedditClient:
    """Bearer-token client for hot listings and comment threads."""

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings with the API base and user agent.
            http: Optional preconfigured client (tests pass a mock transport).
        """
        self._http = http or httpx.AsyncClient(
            base_url=settings.REDDIT_API_BASE,
            headers={"User-Agent": settings.REDDIT_USER_AGENT},
            timeout=settings.SNOOFEED_HTTP_TIMEOUT,
            follow_redirects=True,
        )

    async def _get_json(
        self, path: str, token: str, params: dict | None = None
    ) -> Any:
        """GET a JSON document with the bearer token.

        Args:
            path: Path relative to the API base.
            token: OAuth bearer token.
            params: Optional query parameters.

        Returns:
            Parsed JSON response (dict or list).

        Raises:
            ConnectionError: On network errors, timeouts or non-2xx status.
            ValueError: If the body is not JSON.
        """
        try:
            response = await self._http.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            raise ConnectionError(
                "Reddit is not responding. Please try again in a moment."
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise ConnectionError(
                    f"Reddit refused the request (HTTP {status}). "
                    "Please sign in again."
                )
            raise ConnectionError(
                f"Reddit returned an error (HTTP {status}). Please try again."
            )
        except httpx.HTTPError as e:
            logger.error(f"Network error requesting {path}: {e}")
            raise ConnectionError(
                "Could not reach Reddit. Check your internet connection."
            )

        try:
            return response.json()
        except ValueError:
            raise ValueError("Reddit returned a response that is not JSON.")

    async def get_hot_listing(
        self, subreddit: str, token: str, limit: int = 25
    ) -> list:
        """Get the children of a subreddit's hot listing.

        Args:
            subreddit: Subreddit display name (without r/ prefix).
            token: OAuth bearer token.
            limit: Number of posts to request.

        Returns:
            The raw ``data.children`` sequence.
        """
        data = await self._get_json(
            f"/r/{subreddit}/hot.json", token, params={"limit": limit}
        )
        children = _listing_children(data)
        if children is None:
            raise ValueError("Unexpected response format for the post listing.")
        return children

    async def get_thread_comments(
        self, post_id: str, subreddit: str, token: str
    ) -> list:
        """Get the top-level comment children of a post's thread.

        The thread response is ``[post_listing, comment_listing]``; the
        post listing is ignored.

        Args:
            post_id: Reddit submission ID.
            subreddit: Subreddit the post belongs to.
            token: OAuth bearer token.

        Returns:
            The raw ``data.children`` of the comment listing.
        """
        data = await self._get_json(f"/r/{subreddit}/comments/{post_id}.json", token)
        if not isinstance(data, list) or len(data) < 2:
            raise ValueError("Unexpected response format for the comment thread.")
        children = _listing_children(data[1])
        if children is None:
            raise ValueError("Unexpected response format for the comment listing.")
        return children

    async def get_username(self, token: str) -> Optional[str]:
        """Return the signed-in user's name, or None if it cannot be read."""
        try:
            data = await self._get_json("/api/v1/me", token)
        except (ValueError, ConnectionError) as e:
            logger.warning(f"Could not fetch username: {e}")
            return None
        name = data.get("name") if isinstance(data, dict) else None
        return name if isinstance(name, str) else None

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
