"""Content-type classification for posts.

Maps a Post to exactly one ContentKind by walking a fixed cascade of
signals, first match wins:

    is_self -> gallery_data -> post_hint -> is_video -> media.reddit_video
    -> preview image -> image URL suffix -> video URL suffix/host -> link

When ``post_hint`` is present only the hint is consulted. An unrecognised
hint (including the empty string) yields LINK even if ``is_video`` is set
or the URL points at a video file. Clients rely on this ordering, so do
not route unknown hints into the media/URL checks.
"""

from snoofeed.models.schemas import ContentKind, Post

_VIDEO_HINTS = ("hosted:video", "rich:video")
_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif")
_VIDEO_SUFFIXES = (".mp4", ".mov", ".webm")
_VIDEO_HOSTS = ("v.redd.it", "youtube.com", "youtu.be")


def classify(post: Post) -> ContentKind:
    """Return the primary content kind of a post.

    Args:
        post: A decoded Post.

    Returns:
        One of the ContentKind members. Never raises.
    """
    if post.is_self:
        return ContentKind.SELF_TEXT
    if post.gallery_data is not None:
        return ContentKind.GALLERY

    if post.post_hint is not None:
        return _classify_hint(post.post_hint)

    if post.is_video:
        return ContentKind.VIDEO
    if post.media is not None and post.media.reddit_video is not None:
        return ContentKind.VIDEO
    if (
        post.preview is not None
        and post.preview.images
        and post.preview.images[0].source is not None
    ):
        return ContentKind.IMAGE

    url = post.url.lower()
    if url.endswith(_IMAGE_SUFFIXES):
        return ContentKind.IMAGE
    # Host match is against the URL as sent, suffix match is case-insensitive
    if url.endswith(_VIDEO_SUFFIXES) or any(host in post.url for host in _VIDEO_HOSTS):
        return ContentKind.VIDEO

    return ContentKind.LINK


def _classify_hint(hint: str) -> ContentKind:
    if hint == "image":
        return ContentKind.IMAGE
    if hint in _VIDEO_HINTS:
        return ContentKind.VIDEO
    return ContentKind.LINK
