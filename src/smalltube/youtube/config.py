"""YouTube endpoint constants and cache slot names.

The YouTube Data API v3 grants 10,000 units per GCP project key per day.
Search is the most expensive endpoint at 100 units per call; every list
call used here costs 1 unit.  Pooling N keys gives N x 10,000 units/day.

Quota unit costs (from the YouTube Data API v3 documentation):
- ``search.list``:         100 units per call
- ``videos.list``:           1 unit  per call (batch up to 50 IDs)
- ``channels.list``:         1 unit  per call (batch up to 50 IDs)
- ``playlistItems.list``:    1 unit  per call
"""

from __future__ import annotations

from urllib.parse import quote

# ---------------------------------------------------------------------------
# Request parameters
# ---------------------------------------------------------------------------

MAX_IDS_PER_BATCH: int = 50
"""Maximum IDs per ``videos.list`` / ``channels.list`` call."""

MAX_VIDEOS_PER_CHANNEL: int = 10
"""Upper bound on uploads fetched per channel for the home feed."""

CHANNEL_VIDEOS_PAGE_SIZE: int = 20
"""``maxResults`` for the per-channel search listing."""

CHANNEL_SEARCH_PAGE_SIZE: int = 20
"""``maxResults`` for channel search."""

MIN_VIDEO_DURATION_SECONDS: int = 180
"""Feed and channel listings drop videos shorter than this (shorts)."""

MAX_SEARCH_HISTORY: int = 10
"""Number of past queries remembered."""

YOUTUBE_VIDEO_URL: str = "https://www.youtube.com/watch?v={video_id}"
"""URL template for a YouTube video page."""

# ---------------------------------------------------------------------------
# Cache slots
# ---------------------------------------------------------------------------

TRENDING_CACHE_FILE: str = "trending.json"
HOME_FEED_CACHE_FILE: str = "homeFeed.json"
SUBSCRIPTIONS_CACHE_FILE: str = "subscriptions.json"


def channel_cache_file(channel_id: str) -> str:
    """Cache slot name for one channel's uploads listing.

    The id is percent-encoded so that any input yields a bare file name.
    """
    return f"channel_{quote(channel_id, safe='')}.json"
