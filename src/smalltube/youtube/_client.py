"""URL builders for the YouTube Data API v3 endpoints used by the service.

Every public function here returns a :data:`~smalltube.core.fetch_client.UrlBuilder`,
a callable from API key to request URL.  The key-rotating client invokes it
once per candidate key, so the same logical request can be replayed with a
different ``key`` parameter after a quota failure.

Quota costs: ``search`` 100 units, everything else 1 unit per call.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx

from smalltube.core.fetch_client import UrlBuilder

DEFAULT_BASE_URL: str = "https://www.googleapis.com/youtube/v3"


def _builder(base_url: str, endpoint: str, params: dict[str, Any]) -> UrlBuilder:
    endpoint_url = f"{base_url.rstrip('/')}/{endpoint}"

    def build(api_key: str) -> httpx.URL:
        return httpx.URL(endpoint_url, params={**params, "key": api_key})

    return build


def trending_url(
    *,
    max_results: int,
    region_code: str,
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``videos.list`` for the ``mostPopular`` chart in ``region_code``."""
    return _builder(
        base_url,
        "videos",
        {
            "part": "snippet,contentDetails,statistics",
            "chart": "mostPopular",
            "maxResults": max_results,
            "regionCode": region_code,
        },
    )


def search_videos_url(
    query: str,
    *,
    max_results: int,
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``search.list`` restricted to long-form videos matching ``query``."""
    return _builder(
        base_url,
        "search",
        {
            "part": "snippet",
            "type": "video",
            "videoDuration": "long",
            "q": query,
            "maxResults": max_results,
        },
    )


def channel_search_videos_url(
    channel_id: str,
    *,
    max_results: int,
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``search.list`` of a channel's videos, newest first."""
    return _builder(
        base_url,
        "search",
        {
            "part": "id,snippet",
            "channelId": channel_id,
            "maxResults": max_results,
            "type": "video",
            "order": "date",
        },
    )


def search_channels_url(
    query: str,
    *,
    max_results: int,
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``search.list`` for channels matching ``query``."""
    return _builder(
        base_url,
        "search",
        {"part": "snippet", "type": "channel", "q": query, "maxResults": max_results},
    )


def videos_url(video_ids: Sequence[str], *, base_url: str = DEFAULT_BASE_URL) -> UrlBuilder:
    """``videos.list`` with full details for up to 50 ids."""
    return _builder(
        base_url,
        "videos",
        {"part": "snippet,contentDetails,statistics", "id": ",".join(video_ids)},
    )


def channels_url(
    channel_ids: Sequence[str],
    *,
    part: str = "snippet",
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``channels.list`` for up to 50 ids."""
    return _builder(base_url, "channels", {"part": part, "id": ",".join(channel_ids)})


def playlist_items_url(
    playlist_id: str,
    *,
    max_results: int,
    base_url: str = DEFAULT_BASE_URL,
) -> UrlBuilder:
    """``playlistItems.list`` of a playlist (used for channel uploads)."""
    return _builder(
        base_url,
        "playlistItems",
        {"part": "snippet", "playlistId": playlist_id, "maxResults": max_results},
    )


def key_check_url(*, base_url: str = DEFAULT_BASE_URL) -> UrlBuilder:
    """Smallest ``videos.list`` call (1 unit), used to check that a key works."""
    return _builder(
        base_url,
        "videos",
        {"part": "id", "chart": "mostPopular", "maxResults": 1},
    )
