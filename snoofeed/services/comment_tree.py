"""Comment tree reconstruction and traversal.

Thread listings nest replies as ``replies -> data -> children -> data``.
The builder materializes the whole tree when the thread is decoded and
drops any entry that is not a well-formed comment. Both building and
walking use an explicit stack so deep threads cannot hit the recursion
limit.
"""

from typing import Iterator

from snoofeed.models.schemas import Comment
from snoofeed.services.normalizer import child_data, decode_comment, reply_children


def build_comment_tree(children: list) -> list[Comment]:
    """Build the reply tree for a comment listing.

    Args:
        children: The ``data.children`` sequence of a comment listing.

    Returns:
        Top-level Comments, each owning its replies in listing order.
    """
    roots: list[Comment] = []
    # Each entry pairs raw children with the list their comments go into
    pending: list[tuple[list, list]] = [(children, roots)]

    while pending:
        raw_children, siblings = pending.pop()
        for child in raw_children:
            data = child_data(child)
            comment = decode_comment(data)
            if comment is None:
                continue
            siblings.append(comment)
            nested = reply_children(data)
            if nested:
                pending.append((nested, comment.replies))

    return roots


def walk_comments(comments: list[Comment]) -> Iterator[tuple[Comment, int]]:
    """Yield ``(comment, depth)`` pairs depth-first, preserving sibling order.

    Top-level comments have depth 0. Depth is for indentation only.
    """
    stack = [(comment, 0) for comment in reversed(comments)]
    while stack:
        comment, depth = stack.pop()
        yield comment, depth
        for reply in reversed(comment.replies):
            stack.append((reply, depth + 1))


def count_comments(comments: list[Comment]) -> int:
    """Total number of comments in the forest, replies included."""
    return sum(1 for _ in walk_comments(comments))


def flatten_comments(comments: list[Comment]) -> list[dict]:
    """Serialize the forest as a flat, depth-first list of plain dicts.

    Each entry carries its ``depth`` and ``parent_id`` in place of nested
    replies, so the JSON stays shallow however deep the thread goes.
    """
    rows: list[dict] = []
    ancestors: list[str] = []
    for comment, depth in walk_comments(comments):
        del ancestors[depth:]
        row = comment.model_dump(mode="json", exclude={"replies"})
        row["depth"] = depth
        row["parent_id"] = ancestors[-1] if ancestors else None
        rows.append(row)
        ancestors.append(comment.id)
    return rows
