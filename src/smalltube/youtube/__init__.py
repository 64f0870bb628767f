"""YouTube Data API v3 helpers.

Provides :class:`~smalltube.youtube.service.YouTubeService`, which loads
trending, search, channel, subscription and home-feed listings through the
key-rotating client and caches them per resource.

Quota note: ``search.list`` costs 100 units per call, every other list call
1 unit.  Pooling N keys gives N x 10,000 units per day.
"""

from smalltube.youtube.service import TaskRegistry, YouTubeService

__all__ = ["TaskRegistry", "YouTubeService"]
