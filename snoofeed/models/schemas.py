"""Pydantic v2 schemas for Reddit wire payloads and published state."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel, Field, ValidationError, computed_field, field_validator


class ContentKind(str, Enum):
    """Primary content kind of a post, as shown by the rendering layer."""
    SELF_TEXT = "selfText"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    GALLERY = "gallery"


# ---------------------------------------------------------------------------
# Post media payloads
# ---------------------------------------------------------------------------

class RedditVideo(BaseModel):
    """Reddit-hosted video renditions."""
    fallback_url: str
    hls_url: Optional[str] = None
    dash_url: Optional[str] = None
    duration: Optional[int] = None
    height: Optional[int] = None
    width: Optional[int] = None


class OEmbed(BaseModel):
    """Third-party embed descriptor."""
    provider_url: Optional[str] = None
    title: Optional[str] = None
    thumbnail_url: Optional[str] = None
    html: Optional[str] = None


class Media(BaseModel):
    """Post media container."""
    reddit_video: Optional[RedditVideo] = None
    oembed: Optional[OEmbed] = None


class ImageSource(BaseModel):
    """A single image rendition."""
    url: str
    width: int
    height: int


class ImageVariants(BaseModel):
    """Animated variants of a preview image."""
    gif: Optional["ImagePreview"] = None
    mp4: Optional["ImagePreview"] = None


class ImagePreview(BaseModel):
    """A preview image with its resolution variants."""
    source: Optional[ImageSource] = None
    resolutions: list[ImageSource] = Field(default_factory=list)
    variants: Optional[ImageVariants] = None


class Preview(BaseModel):
    """Post preview block."""
    images: list[ImagePreview] = Field(default_factory=list)
    reddit_video_preview: Optional[RedditVideo] = None


class GalleryItem(BaseModel):
    """One entry of a gallery post."""
    id: int
    media_id: str


class GalleryData(BaseModel):
    """Ordered gallery items."""
    items: list[GalleryItem] = Field(default_factory=list)


ImageVariants.model_rebuild()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class Post(BaseModel):
    """Reddit post (t3) data.

    Only the fields the rendering layer needs are modeled; unknown keys
    are ignored. ``content_kind`` is derived from the other fields every
    time it is read and is never stored.
    """
    id: str
    title: str
    author: str
    created: float
    selftext: str
    score: int
    num_comments: int
    url: str
    is_self: bool
    permalink: str
    domain: str
    is_video: bool
    thumbnail: Optional[str] = None
    post_hint: Optional[str] = None
    media: Optional[Media] = None
    preview: Optional[Preview] = None
    gallery_data: Optional[GalleryData] = None
    crosspost_parent_list: Optional[list["Post"]] = None

    @field_validator("crosspost_parent_list", mode="before")
    @classmethod
    def _drop_malformed_crossposts(cls, value: object) -> Optional[list["Post"]]:
        """Keep the crosspost parents that validate, drop the rest."""
        if not isinstance(value, list):
            return None
        parents: list[Post] = []
        for item in value:
            try:
                parents.append(Post.model_validate(item))
            except ValidationError:
                continue
        return parents

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_kind(self) -> ContentKind:
        """Content kind derived from the current field values."""
        from snoofeed.services.classifier import classify
        return classify(self)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)

    @property
    def has_gallery(self) -> bool:
        return self.gallery_data is not None

    @property
    def has_thumbnail(self) -> bool:
        """True when the thumbnail is a real URL rather than a marker like 'self'."""
        return bool(self.thumbnail) and self.thumbnail.startswith("http")

    @property
    def image_url(self) -> str:
        """Best image URL: the first preview source, else the post URL."""
        if self.preview and self.preview.images and self.preview.images[0].source:
            return self.preview.images[0].source.url.replace("&amp;", "&")
        return self.url

    @property
    def video_source_label(self) -> str:
        if "youtube" in self.domain:
            return "YouTube"
        if "v.redd.it" in self.domain:
            return "Reddit Video"
        return self.domain

    @property
    def youtube_video_id(self) -> Optional[str]:
        """Video id for youtube.com/watch?v=... and youtu.be/... URLs."""
        if "youtube.com" in self.url:
            ids = parse_qs(urlparse(self.url).query).get("v")
            return ids[0] if ids else None
        if "youtu.be" in self.url:
            video_id = urlparse(self.url).path.rstrip("/").rsplit("/", 1)[-1]
            return video_id or None
        return None


class Comment(BaseModel):
    """Reddit comment (t1) data with its fully materialized replies."""
    id: str
    author: str
    body: str
    created: float
    score: int
    replies: list["Comment"] = Field(default_factory=list)

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)


class Subreddit(BaseModel):
    """A subreddit offered in the picker."""
    name: str
    display_name: str


DEFAULT_SUBREDDITS: tuple[Subreddit, ...] = (
    Subreddit(name="all", display_name="All"),
    Subreddit(name="popular", display_name="Popular"),
    Subreddit(name="news", display_name="News"),
    Subreddit(name="pics", display_name="Pics"),
    Subreddit(name="funny", display_name="Funny"),
    Subreddit(name="AskReddit", display_name="Ask Reddit"),
    Subreddit(name="videos", display_name="Videos"),
    Subreddit(name="gifs", display_name="Gifs"),
    Subreddit(name="gaming", display_name="Gaming"),
)


# ---------------------------------------------------------------------------
# Link previews and published state
# ---------------------------------------------------------------------------

class LinkMetadata(BaseModel):
    """Scraped preview data for an external link, keyed by ``url``."""
    url: str
    title: str = ""
    description: str = ""
    image_url: Optional[str] = None
    site_name: str = ""


class LinkMetadataStatus(str, Enum):
    """Cache state of a URL as seen by readers."""
    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    RESOLVED = "resolved"


class FeedSnapshot(BaseModel):
    """Consistent view of the orchestrator state."""
    posts: list[Post]
    comments: list[Comment]
    is_loading: bool
    error_message: Optional[str] = None
