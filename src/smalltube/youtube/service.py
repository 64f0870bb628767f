"""Application-level YouTube fetch helpers.

:class:`YouTubeService` composes the key-rotating client with one
:class:`~smalltube.core.cache.CacheStore` per logical resource:

=========================  ============================  =====================
Resource                   Cache slot                    TTL
=========================  ============================  =====================
Trending chart             ``trending.json``             user cache timeout
Home feed                  ``homeFeed.json``             user cache timeout
Channel uploads            ``channel_<id>.json``         user cache timeout
Subscribed channels        ``subscriptions.json``        30 days
=========================  ============================  =====================

A cached listing is served only when it is non-empty and not expired;
an empty cached collection counts as a miss.  ``ignore_cache=True`` always
goes to the network.  A fetch cancelled mid-flight (``CancelledError``)
propagates before any ``save``, so a cancelled refresh never overwrites a
good cache entry.

Search results are never cached.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from smalltube.config.settings import ThumbnailQuality
from smalltube.core.cache import CacheStore
from smalltube.core.exceptions import (
    NoCredentialAvailableError,
    QuotaExceededError,
    SmallTubeError,
)
from smalltube.core.fetch_client import KeyRotatingClient, UrlBuilder
from smalltube.youtube import _client
from smalltube.youtube.config import (
    CHANNEL_SEARCH_PAGE_SIZE,
    CHANNEL_VIDEOS_PAGE_SIZE,
    HOME_FEED_CACHE_FILE,
    MAX_IDS_PER_BATCH,
    MAX_VIDEOS_PER_CHANNEL,
    MIN_VIDEO_DURATION_SECONDS,
    SUBSCRIPTIONS_CACHE_FILE,
    TRENDING_CACHE_FILE,
    channel_cache_file,
)
from smalltube.youtube.history import SearchHistory
from smalltube.youtube.models import (
    Channel,
    ChannelListResponse,
    PlaylistItemsResponse,
    SearchResponse,
    Video,
    VideoListResponse,
    choose_thumbnail,
    decode_response,
)
from smalltube.youtube.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

# Errors that make every remaining request in a fan-out pointless.
_FATAL_ERRORS: tuple[type[SmallTubeError], ...] = (QuotaExceededError, NoCredentialAvailableError)


def _chunked(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _is_long_enough(video: Video) -> bool:
    # Unknown duration is kept.
    return video.duration_seconds is None or video.duration_seconds >= MIN_VIDEO_DURATION_SECONDS


# ---------------------------------------------------------------------------
# Refresh task registry
# ---------------------------------------------------------------------------


class TaskRegistry:
    """At most one running task per logical resource name."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def replace(self, name: str, coro: Awaitable[T]) -> asyncio.Task[T]:
        """Cancel any still-running task for ``name`` and start ``coro``."""
        self.cancel(name)
        task: asyncio.Task[T] = asyncio.ensure_future(coro)
        self._tasks[name] = task

        def _forget(done: asyncio.Task[Any]) -> None:
            if self._tasks.get(name) is done:
                del self._tasks[name]

        task.add_done_callback(_forget)
        return task

    def get(self, name: str) -> asyncio.Task[Any] | None:
        return self._tasks.get(name)

    def cancel(self, name: str) -> bool:
        previous = self._tasks.get(name)
        if previous is None or previous.done():
            return False
        previous.cancel()
        logger.debug("refresh: cancelled in-flight load of %s", name)
        return True


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class YouTubeService:
    """Trending, search, channel, subscription and home-feed loaders.

    Args:
        client: Key-rotating HTTP client used for every request.
        subscriptions: Persisted subscription ids.
        cache_dir: Directory for cache slots.
        cache_ttl: TTL in seconds for trending, home-feed and channel
            caches.  ``0`` disables them.
        subscriptions_ttl: TTL of the subscribed-channel metadata cache.
        history: Optional search history recorder.
        results_count: ``maxResults`` for trending and search.
        home_feed_channel_count: Subscriptions sampled per home-feed load.
        country_code: Region of the trending chart.
        thumbnail_quality: Preferred video thumbnail resolution.
        base_url: YouTube Data API base URL.
        clock: Unix-time source handed to every cache store.
        rng: Random source used to sample home-feed channels.
    """

    def __init__(
        self,
        client: KeyRotatingClient,
        subscriptions: SubscriptionStore,
        *,
        cache_dir: Path,
        cache_ttl: float,
        subscriptions_ttl: float = 86400 * 30,
        history: SearchHistory | None = None,
        results_count: int = 10,
        home_feed_channel_count: int = 15,
        country_code: str = "US",
        thumbnail_quality: ThumbnailQuality = ThumbnailQuality.HIGH,
        base_url: str = _client.DEFAULT_BASE_URL,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self.client = client
        self.subscriptions = subscriptions
        self.history = history
        self.cache_dir = cache_dir
        self.cache_ttl = cache_ttl
        self.subscriptions_ttl = subscriptions_ttl
        self.results_count = results_count
        self.home_feed_channel_count = home_feed_channel_count
        self.country_code = country_code
        self.thumbnail_quality = thumbnail_quality
        self.base_url = base_url
        self._clock = clock
        self._rng = rng or random.Random()
        self.tasks = TaskRegistry()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def video_cache(self, filename: str) -> CacheStore[list[Video]]:
        return CacheStore(list[Video], filename, self.cache_ttl, self.cache_dir, clock=self._clock)

    def subscriptions_cache(self) -> CacheStore[list[Channel]]:
        return CacheStore(
            list[Channel],
            SUBSCRIPTIONS_CACHE_FILE,
            self.subscriptions_ttl,
            self.cache_dir,
            clock=self._clock,
        )

    async def _get(self, builder: UrlBuilder, model: type[M], endpoint: str) -> M:
        body = await self.client.fetch_with_rotation(builder)
        return decode_response(model, body, endpoint)

    async def _cached_videos(
        self,
        cache: CacheStore[list[Video]],
        load: Callable[[], Awaitable[list[Video]]],
        ignore_cache: bool,
    ) -> list[Video]:
        if not ignore_cache:
            cached = cache.load()
            if cached and not cache.is_expired:
                logger.debug("service: %d videos from cache %s", len(cached), cache.filename)
                return cached
        videos = await load()
        cache.save(videos)
        return videos

    def _to_videos(self, response: VideoListResponse) -> list[Video]:
        return [Video.from_item(item, self.thumbnail_quality) for item in response.items]

    # ------------------------------------------------------------------
    # Trending
    # ------------------------------------------------------------------

    async def trending(self, ignore_cache: bool = False) -> list[Video]:
        """Most-popular chart for the configured region, cached in ``trending.json``."""

        async def load() -> list[Video]:
            response = await self._get(
                _client.trending_url(
                    max_results=self.results_count,
                    region_code=self.country_code,
                    base_url=self.base_url,
                ),
                VideoListResponse,
                "videos",
            )
            videos = self._to_videos(response)
            logger.info("service: trending returned %d videos", len(videos))
            return videos

        return await self._cached_videos(self.video_cache(TRENDING_CACHE_FILE), load, ignore_cache)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_videos(self, query: str) -> list[Video]:
        """Search long-form videos and return them with full details.

        A blank query returns an empty list without any request.  Non-blank
        queries are recorded in the search history before the request.
        """
        query = query.strip()
        if not query:
            return []
        if self.history is not None:
            self.history.record(query)

        search = await self._get(
            _client.search_videos_url(query, max_results=self.results_count, base_url=self.base_url),
            VideoListResponse,
            "search",
        )
        video_ids = [item.id for item in search.items]
        if not video_ids:
            return []
        # search.list truncates descriptions; fetch the full resources.
        return await self.video_details(video_ids, drop_short=False)

    async def search_channels(self, query: str) -> list[Channel]:
        query = query.strip()
        if not query:
            return []
        response = await self._get(
            _client.search_channels_url(
                query, max_results=CHANNEL_SEARCH_PAGE_SIZE, base_url=self.base_url
            ),
            SearchResponse,
            "search",
        )
        channels = [Channel.from_search_item(item) for item in response.items]
        return [channel for channel in channels if channel is not None]

    # ------------------------------------------------------------------
    # Video details
    # ------------------------------------------------------------------

    async def video_details(self, video_ids: Sequence[str], drop_short: bool = True) -> list[Video]:
        """Fetch full video resources in batches of 50, in request order.

        Args:
            video_ids: Ids to look up.
            drop_short: Drop videos shorter than three minutes.
        """
        if not video_ids:
            return []
        responses = await asyncio.gather(
            *(
                self._get(_client.videos_url(batch, base_url=self.base_url), VideoListResponse, "videos")
                for batch in _chunked(video_ids, MAX_IDS_PER_BATCH)
            )
        )
        videos = [video for response in responses for video in self._to_videos(response)]
        if drop_short:
            kept = [video for video in videos if _is_long_enough(video)]
            logger.debug("service: %d/%d videos kept (>= 3 min)", len(kept), len(videos))
            return kept
        return videos

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def channel_videos(self, channel_id: str, ignore_cache: bool = False) -> list[Video]:
        """Latest uploads of one channel, cached in ``channel_<id>.json``."""

        async def load() -> list[Video]:
            search = await self._get(
                _client.channel_search_videos_url(
                    channel_id, max_results=CHANNEL_VIDEOS_PAGE_SIZE, base_url=self.base_url
                ),
                VideoListResponse,
                "search",
            )
            video_ids = [item.id for item in search.items]
            if not video_ids:
                logger.info("service: no videos found for channel %s", channel_id)
                return []
            videos = await self.video_details(video_ids)
            try:
                icons = await self.channel_thumbnails([channel_id])
            except SmallTubeError as exc:
                logger.warning("service: channel icon lookup failed [%s]: %s", channel_id, exc)
                icons = {}
            icon_url = icons.get(channel_id)
            if icon_url:
                videos = [video.model_copy(update={"channel_icon_url": icon_url}) for video in videos]
            return videos

        return await self._cached_videos(
            self.video_cache(channel_cache_file(channel_id)), load, ignore_cache
        )

    async def channel_thumbnails(self, channel_ids: Sequence[str]) -> dict[str, str]:
        """Map channel id to its best thumbnail URL."""
        if not channel_ids:
            return {}
        responses = await asyncio.gather(
            *(
                self._get(_client.channels_url(batch, base_url=self.base_url), ChannelListResponse, "channels")
                for batch in _chunked(channel_ids, MAX_IDS_PER_BATCH)
            )
        )
        return {
            item.id: choose_thumbnail(item.snippet.thumbnails)
            for response in responses
            for item in response.items
            if item.snippet is not None
        }

    async def validate_channel(self, channel_id: str) -> bool:
        """Check that ``channel_id`` exists and subscribe to it if so.

        Request failures are logged and reported as ``False``.
        """
        channel_id = channel_id.strip()
        if not channel_id:
            return False
        try:
            response = await self._get(
                _client.channels_url([channel_id], base_url=self.base_url),
                ChannelListResponse,
                "channels",
            )
        except SmallTubeError as exc:
            logger.error("service: validate channel failed [%s]: %s", channel_id, exc)
            return False
        if not response.items:
            logger.info("service: channel id not found: %s", channel_id)
            return False
        self.subscriptions.add(channel_id)
        return True

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def fetch_subscriptions(self, descending: bool = False) -> list[Channel]:
        """Return metadata for every subscribed channel, sorted by title.

        Cached channels (regardless of age) and placeholders seed the result.
        Fresh metadata is fetched in batches of 50; a failed batch is
        logged and its channels keep their seeded entries.  The cache is
        rewritten only when at least one batch succeeded.
        """
        channel_ids = self.subscriptions.ids
        if not channel_ids:
            logger.info("service: no stored subscription ids")
            return []

        cache = self.subscriptions_cache()
        wanted = set(channel_ids)
        merged: dict[str, Channel] = {
            channel.id: channel for channel in (cache.load() or []) if channel.id in wanted
        }
        for channel_id in channel_ids:
            merged.setdefault(channel_id, Channel.placeholder(channel_id))

        if not self.client.pool:
            logger.warning("service: fetch_subscriptions skipping API fetch: API key missing")
            return self._sort_channels(merged.values(), descending)

        batches = _chunked(channel_ids, MAX_IDS_PER_BATCH)
        results = await asyncio.gather(
            *(
                self._get(_client.channels_url(batch, base_url=self.base_url), ChannelListResponse, "channels")
                for batch in batches
            ),
            return_exceptions=True,
        )
        fetched: list[Channel] = []
        for batch, result in zip(batches, results):
            if isinstance(result, BaseException):
                if not isinstance(result, SmallTubeError):
                    raise result
                logger.warning("service: channel batch of %d failed: %s", len(batch), result)
                continue
            fetched.extend(Channel.from_item(item) for item in result.items if item.id in wanted)

        if fetched:
            for channel in fetched:
                merged[channel.id] = channel
            cache.save(list(merged.values()))
        return self._sort_channels(merged.values(), descending)

    @staticmethod
    def _sort_channels(channels: Any, descending: bool) -> list[Channel]:
        return sorted(channels, key=lambda channel: channel.title.casefold(), reverse=descending)

    # ------------------------------------------------------------------
    # Home feed
    # ------------------------------------------------------------------

    async def home_feed(self, ignore_cache: bool = False) -> list[Video]:
        """Recent uploads from a random sample of subscribed channels.

        Up to ``home_feed_channel_count`` subscriptions are sampled; each
        contributes its latest uploads (at most 10, never more than
        ``results_count``).  Videos shorter than three minutes are dropped
        and the rest sorted newest first.  Cached in ``homeFeed.json``.
        """

        async def load() -> list[Video]:
            channels = await self.fetch_subscriptions()
            if not channels:
                logger.info("service: no subscriptions, home feed empty")
                return []
            sample = self._rng.sample(channels, min(self.home_feed_channel_count, len(channels)))
            per_channel = min(self.results_count, MAX_VIDEOS_PER_CHANNEL)

            results = await asyncio.gather(
                *(self._channel_uploads(channel.id, per_channel) for channel in sample),
                return_exceptions=True,
            )
            videos: list[Video] = []
            for channel, result in zip(sample, results):
                if isinstance(result, BaseException):
                    if isinstance(result, _FATAL_ERRORS) or not isinstance(result, SmallTubeError):
                        raise result
                    logger.warning("service: uploads for channel %s failed: %s", channel.id, result)
                    continue
                videos.extend(result)

            icons = {channel.id: channel.thumbnail_url for channel in channels}
            videos = [
                video.model_copy(update={"channel_icon_url": icons[video.channel_id]})
                if video.channel_id in icons
                else video
                for video in videos
            ]
            videos.sort(key=lambda video: video.published_at, reverse=True)
            logger.info("service: home feed built from %d channels, %d videos", len(sample), len(videos))
            return videos

        return await self._cached_videos(self.video_cache(HOME_FEED_CACHE_FILE), load, ignore_cache)

    async def _channel_uploads(self, channel_id: str, max_results: int) -> list[Video]:
        response = await self._get(
            _client.channels_url([channel_id], part="contentDetails", base_url=self.base_url),
            ChannelListResponse,
            "channels",
        )
        playlist_id = response.items[0].uploads_playlist_id if response.items else None
        if not playlist_id:
            logger.info("service: no uploads playlist for channel %s", channel_id)
            return []
        playlist = await self._get(
            _client.playlist_items_url(playlist_id, max_results=max_results, base_url=self.base_url),
            PlaylistItemsResponse,
            "playlistItems",
        )
        video_ids = [
            item.snippet.resource_id.video_id
            for item in playlist.items
            if item.snippet.resource_id.video_id
        ]
        return await self.video_details(video_ids)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, name: str, load: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        """Start ``load()`` as the only in-flight load of resource ``name``.

        Any previous load of the same resource is cancelled first.
        """
        return self.tasks.replace(name, load())

    def refresh_trending(self) -> asyncio.Task[list[Video]]:
        return self.refresh("trending", lambda: self.trending(ignore_cache=True))

    def refresh_home_feed(self) -> asyncio.Task[list[Video]]:
        return self.refresh("home_feed", lambda: self.home_feed(ignore_cache=True))

    def refresh_channel(self, channel_id: str) -> asyncio.Task[list[Video]]:
        return self.refresh(
            f"channel:{channel_id}", lambda: self.channel_videos(channel_id, ignore_cache=True)
        )
