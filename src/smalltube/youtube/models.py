"""Pydantic models for YouTube Data API v3 payloads and the cached domain types.

Two layers live here:

- *Wire* models (``VideoItem``, ``ChannelItem``, ``SearchItem``, ...) mirror
  the JSON the API returns, camelCase aliases included.  They are only used
  to decode response bodies.
- *Domain* models (:class:`Video`, :class:`Channel`) are what the service
  returns and what the cache persists.

Response bodies are decoded through :func:`decode_response`, which turns
any shape mismatch into :class:`~smalltube.core.exceptions.ResponseDecodeError`.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from smalltube.config.settings import ThumbnailQuality
from smalltube.core.alerts import ErrorResponse
from smalltube.core.exceptions import ResponseDecodeError

logger = logging.getLogger(__name__)

__all__ = [
    "Channel",
    "ChannelItem",
    "ChannelListResponse",
    "ErrorResponse",
    "PlaylistItemsResponse",
    "SearchResponse",
    "Video",
    "VideoItem",
    "VideoListResponse",
    "choose_thumbnail",
    "decode_html_entities",
    "decode_response",
    "parse_duration",
]

BLANK_URL: str = "about:blank"

# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

_HTML_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
)


def decode_html_entities(text: str) -> str:
    """Decode the small set of HTML entities YouTube emits in titles.

    Replacement is sequential, so ``&amp;lt;`` becomes ``<``.
    """
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


_DURATION_PART = re.compile(r"(\d*)([HMS])")


def parse_duration(value: str) -> int:
    """Convert an ISO-8601 ``PT#H#M#S`` duration to seconds.

    Anything without the ``PT`` prefix (including day-based ``P1DT...``
    values) yields 0, as do unparseable components.

    Args:
        value: Duration string as returned in ``contentDetails.duration``.

    Returns:
        Total seconds.
    """
    if not value.startswith("PT"):
        return 0
    multipliers = {"H": 3600, "M": 60, "S": 1}
    total = 0
    for digits, unit in _DURATION_PART.findall(value[2:]):
        total += int(digits or 0) * multipliers[unit]
    return total


# ---------------------------------------------------------------------------
# Thumbnails
# ---------------------------------------------------------------------------

_THUMBNAIL_PREFERENCE: dict[ThumbnailQuality, tuple[str, ...]] = {
    ThumbnailQuality.HIGH: ("maxres", "standard", "high", "medium", "default"),
    ThumbnailQuality.MEDIUM: ("high", "medium", "default"),
    ThumbnailQuality.LOW: ("medium", "default"),
}

_BEST_THUMBNAIL: tuple[str, ...] = ("high", "medium", "default")


class Thumbnail(BaseModel):
    url: str


def choose_thumbnail(
    thumbnails: dict[str, Thumbnail],
    quality: ThumbnailQuality | None = None,
) -> str:
    """Pick a thumbnail URL by preference order.

    With ``quality=None`` the channel ordering is used (high, medium,
    default).  Falls back to ``about:blank`` when nothing matches.
    """
    order = _THUMBNAIL_PREFERENCE[quality] if quality is not None else _BEST_THUMBNAIL
    for name in order:
        thumb = thumbnails.get(name)
        if thumb is not None and thumb.url:
            return thumb.url
    return BLANK_URL


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VideoSnippet(_WireModel):
    title: str
    description: str = ""
    published_at: datetime = Field(alias="publishedAt")
    channel_title: str = Field(default="", alias="channelTitle")
    channel_id: str = Field(default="", alias="channelId")
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)


class VideoContentDetails(_WireModel):
    duration: str | None = None


class VideoStatistics(_WireModel):
    view_count: str | None = Field(default=None, alias="viewCount")


class VideoItem(_WireModel):
    """A ``videos.list`` or ``search.list`` item.

    ``id`` is a plain string in ``videos.list`` and an object carrying
    ``videoId`` in ``search.list``; both decode to the bare video id.
    """

    id: str
    snippet: VideoSnippet
    content_details: VideoContentDetails | None = Field(default=None, alias="contentDetails")
    statistics: VideoStatistics | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _unwrap_search_id(cls, value: Any) -> Any:
        if isinstance(value, dict):
            video_id = value.get("videoId")
            if not isinstance(video_id, str):
                raise ValueError("id object carries no videoId")
            return video_id
        return value

    @property
    def duration_seconds(self) -> int | None:
        if self.content_details is None or self.content_details.duration is None:
            return None
        return parse_duration(self.content_details.duration)

    @property
    def view_count(self) -> int | None:
        if self.statistics is None or self.statistics.view_count is None:
            return None
        try:
            return int(self.statistics.view_count)
        except ValueError:
            return None


class VideoListResponse(_WireModel):
    items: list[VideoItem] = Field(default_factory=list)


class RelatedPlaylists(_WireModel):
    uploads: str | None = None


class ChannelContentDetails(_WireModel):
    related_playlists: RelatedPlaylists = Field(
        default_factory=RelatedPlaylists, alias="relatedPlaylists"
    )


class ChannelSnippet(_WireModel):
    title: str
    description: str = ""
    custom_url: str | None = Field(default=None, alias="customUrl")
    country: str | None = None
    published_at: datetime | None = Field(default=None, alias="publishedAt")
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)


class ChannelStatistics(_WireModel):
    view_count: int | None = Field(default=None, alias="viewCount")
    subscriber_count: int | None = Field(default=None, alias="subscriberCount")
    hidden_subscriber_count: bool | None = Field(default=None, alias="hiddenSubscriberCount")
    video_count: int | None = Field(default=None, alias="videoCount")


class ChannelItem(_WireModel):
    id: str
    snippet: ChannelSnippet | None = None
    content_details: ChannelContentDetails | None = Field(default=None, alias="contentDetails")
    statistics: ChannelStatistics | None = None

    @property
    def uploads_playlist_id(self) -> str | None:
        if self.content_details is None:
            return None
        return self.content_details.related_playlists.uploads


class ChannelListResponse(_WireModel):
    items: list[ChannelItem] = Field(default_factory=list)


class SearchItemId(_WireModel):
    kind: str = ""
    video_id: str | None = Field(default=None, alias="videoId")
    channel_id: str | None = Field(default=None, alias="channelId")


class SearchSnippet(_WireModel):
    channel_id: str | None = Field(default=None, alias="channelId")
    title: str
    description: str = ""
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)


class SearchItem(_WireModel):
    id: SearchItemId
    snippet: SearchSnippet


class SearchResponse(_WireModel):
    items: list[SearchItem] = Field(default_factory=list)


class ResourceId(_WireModel):
    video_id: str | None = Field(default=None, alias="videoId")


class PlaylistSnippet(_WireModel):
    resource_id: ResourceId = Field(alias="resourceId")


class PlaylistItem(_WireModel):
    snippet: PlaylistSnippet


class PlaylistItemsResponse(_WireModel):
    items: list[PlaylistItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class Video(BaseModel):
    """A video as shown in a listing and persisted in the cache."""

    id: str
    title: str
    description: str = ""
    thumbnail_url: str = BLANK_URL
    published_at: datetime
    channel_title: str = ""
    channel_id: str = ""
    channel_icon_url: str | None = None
    duration_seconds: int | None = None
    view_count: int | None = None

    @classmethod
    def from_item(
        cls,
        item: VideoItem,
        quality: ThumbnailQuality = ThumbnailQuality.HIGH,
    ) -> Video:
        snippet = item.snippet
        return cls(
            id=item.id,
            title=decode_html_entities(snippet.title),
            description=snippet.description,
            thumbnail_url=choose_thumbnail(snippet.thumbnails, quality),
            published_at=snippet.published_at,
            channel_title=snippet.channel_title,
            channel_id=snippet.channel_id,
            duration_seconds=item.duration_seconds,
            view_count=item.view_count,
        )


class Channel(BaseModel):
    """A subscribed or searched-for channel."""

    id: str
    title: str
    description: str = ""
    thumbnail_url: str = BLANK_URL
    custom_url: str | None = None
    country: str | None = None
    published_at: datetime | None = None
    subscriber_count: int | None = None
    video_count: int | None = None
    view_count: int | None = None

    @classmethod
    def placeholder(cls, channel_id: str) -> Channel:
        """Stand-in shown until the channel's details have been fetched."""
        return cls(id=channel_id, title=f"Channel {channel_id[:8]}", description="Loading...")

    @classmethod
    def from_item(cls, item: ChannelItem) -> Channel:
        snippet = item.snippet
        if snippet is None:
            return cls.placeholder(item.id)
        stats = item.statistics or ChannelStatistics()
        return cls(
            id=item.id,
            title=decode_html_entities(snippet.title),
            description=snippet.description,
            thumbnail_url=choose_thumbnail(snippet.thumbnails),
            custom_url=snippet.custom_url,
            country=snippet.country,
            published_at=snippet.published_at,
            subscriber_count=stats.subscriber_count,
            video_count=stats.video_count,
            view_count=stats.view_count,
        )

    @classmethod
    def from_search_item(cls, item: SearchItem) -> Channel | None:
        channel_id = item.snippet.channel_id or item.id.channel_id
        if not channel_id:
            return None
        return cls(
            id=channel_id,
            title=decode_html_entities(item.snippet.title),
            description=item.snippet.description,
            thumbnail_url=choose_thumbnail(item.snippet.thumbnails),
        )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


def decode_response(model: type[M], data: bytes, endpoint: str = "") -> M:
    """Validate a response body against ``model``.

    Raises:
        ResponseDecodeError: If the body is not JSON or has the wrong shape.
    """
    try:
        return model.model_validate_json(data)
    except ValidationError as exc:
        logger.error(
            "decode: %s response did not match %s: %d error(s)",
            endpoint or "API",
            model.__name__,
            exc.error_count(),
        )
        raise ResponseDecodeError(
            f"Unexpected {endpoint or 'API'} response shape", endpoint=endpoint or None
        ) from exc
