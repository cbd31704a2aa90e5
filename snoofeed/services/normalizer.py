"""Decoding of raw listing children into Post and Comment entities.

Each record is validated on its own. A record that fails validation is
logged and dropped so that one malformed child never costs the caller
the rest of the batch.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from snoofeed.models.schemas import Comment, Post

logger = logging.getLogger(__name__)


def child_data(child: Any) -> Optional[dict]:
    """Return the ``data`` object of a listing child, if it has one."""
    if not isinstance(child, dict):
        return None
    data = child.get("data")
    return data if isinstance(data, dict) else None


def decode_posts(children: list) -> list[Post]:
    """Decode a feed listing's children into Posts.

    Args:
        children: The ``data.children`` sequence of a post listing.

    Returns:
        The successfully decoded Posts, in listing order.
    """
    posts: list[Post] = []
    for child in children:
        data = child_data(child)
        if data is None:
            logger.debug("Skipping listing child without a data object")
            continue
        try:
            posts.append(Post.model_validate(data))
        except ValidationError as e:
            logger.debug(
                f"Dropping malformed post {data.get('id', '?')}: "
                f"{e.error_count()} validation error(s)"
            )
    return posts


def decode_comment(data: Optional[dict]) -> Optional[Comment]:
    """Decode a single comment record without its replies.

    Args:
        data: The ``data`` object of a comment listing child.

    Returns:
        A Comment with an empty reply list, or None if the record is
        missing required fields (e.g. a "more" stub).
    """
    if data is None:
        return None
    fields = {key: value for key, value in data.items() if key != "replies"}
    try:
        return Comment.model_validate(fields)
    except ValidationError as e:
        logger.debug(
            f"Dropping malformed comment {data.get('id', '?')}: "
            f"{e.error_count()} validation error(s)"
        )
        return None


def reply_children(data: dict) -> list:
    """Return the child entries nested under ``replies.data.children``.

    Reddit sends an empty string for "no replies"; any missing or
    mis-shaped link in the chain yields an empty list.
    """
    replies = data.get("replies")
    if not isinstance(replies, dict):
        return []
    listing = replies.get("data")
    if not isinstance(listing, dict):
        return []
    children = listing.get("children")
    return children if isinstance(children, list) else []
