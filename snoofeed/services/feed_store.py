"""Feed store: orchestrates feed and thread fetches.

Holds the state the rendering layer shows: the published posts, the
comment tree of the open thread, a loading flag and the last error.
Each successful fetch replaces the published list wholesale. A failed
fetch records an error and leaves the previous list in place, so stale
posts may be shown alongside the error.

There is no request identity: if an older fetch finishes after a newer
one, the older result overwrites the newer (last writer wins).
"""

import logging
from typing import Optional

from snoofeed.models.schemas import Comment, ContentKind, FeedSnapshot, Post
from snoofeed.services.cache import LinkMetadataCache
from snoofeed.services.comment_tree import build_comment_tree, count_comments
from snoofeed.services.normalizer import decode_posts
from snoofeed.services.reddit_client import RedditClient

logger = logging.getLogger(__name__)

_DEFAULT_FEED_LIMIT = 25


class FeedStore:
    """Coordinates Reddit fetches and publishes their results.

    All state changes happen on the event loop between awaits, and lists
    are swapped rather than edited, so a reader never sees a half-built
    feed or thread.
    """

    def __init__(
        self, reddit_client: RedditClient, metadata_cache: LinkMetadataCache
    ) -> None:
        """Initialize an empty store.

        Args:
            reddit_client: Client for the Reddit OAuth API.
            metadata_cache: Cache that link posts are prefetched into.
        """
        self.reddit_client = reddit_client
        self.metadata_cache = metadata_cache
        self.posts: list[Post] = []
        self.comments: list[Comment] = []
        self.is_loading: bool = False
        self.error_message: Optional[str] = None

    async def fetch_feed(
        self, subreddit: str, token: str, limit: int = _DEFAULT_FEED_LIMIT
    ) -> None:
        """Fetch a subreddit's hot listing and publish its posts.

        Link posts get their preview metadata requested in the background;
        those fetches are not awaited and cannot be cancelled.

        Args:
            subreddit: Subreddit display name.
            token: OAuth bearer token.
            limit: Number of posts to request.
        """
        self.is_loading = True
        self.error_message = None

        try:
            children = await self.reddit_client.get_hot_listing(subreddit, token, limit)
        except (ValueError, ConnectionError) as e:
            logger.warning(f"Feed fetch for r/{subreddit} failed: {e}")
            self.error_message = str(e) or "Failed to load posts."
            return
        finally:
            self.is_loading = False

        posts = decode_posts(children)
        self.posts = posts

        for post in posts:
            if post.content_kind == ContentKind.LINK:
                self.metadata_cache.resolve(post.url)

        logger.info(
            f"Published {len(posts)} posts from r/{subreddit} "
            f"({len(children) - len(posts)} dropped)"
        )

    async def fetch_thread(self, post_id: str, subreddit: str, token: str) -> None:
        """Fetch a post's comment thread and publish its reply tree.

        Args:
            post_id: Reddit submission ID.
            subreddit: Subreddit the post belongs to.
            token: OAuth bearer token.
        """
        self.is_loading = True
        self.error_message = None

        try:
            children = await self.reddit_client.get_thread_comments(post_id, subreddit, token)
        except (ValueError, ConnectionError) as e:
            logger.warning(f"Thread fetch for {post_id} failed: {e}")
            self.error_message = str(e) or "Failed to load comments."
            return
        finally:
            self.is_loading = False

        comments = build_comment_tree(children)
        self.comments = comments

        logger.info(
            f"Published thread {post_id}: {len(comments)} top-level, "
            f"{count_comments(comments)} total comments"
        )

    def snapshot(self) -> FeedSnapshot:
        """Return the current state as one consistent value."""
        return FeedSnapshot(
            posts=self.posts,
            comments=self.comments,
            is_loading=self.is_loading,
            error_message=self.error_message,
        )
