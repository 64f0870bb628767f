"""Subscribed channel ids and favorites, persisted in the state store.

The id list is small, so every mutation writes through immediately.
Channel metadata for these ids is fetched and cached by
:meth:`smalltube.youtube.service.YouTubeService.fetch_subscriptions`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from smalltube.core.state import Preferences

logger = logging.getLogger(__name__)

MIN_CHANNEL_ID_LENGTH: int = 6
"""Shorter first-column values in an imported CSV are discarded."""


def parse_subscription_csv(content: str) -> list[str]:
    """Extract channel ids from a Google Takeout ``subscriptions.csv`` export.

    The first row is a header and is skipped.  Each following row
    contributes its first column, trimmed, if it is longer than five
    characters.

    Args:
        content: Full text of the CSV file.

    Returns:
        Channel ids in file order.
    """
    ids: list[str] = []
    for index, row in enumerate(content.splitlines()):
        if index == 0:
            continue
        channel_id = row.split(",", 1)[0].strip()
        if len(channel_id) >= MIN_CHANNEL_ID_LENGTH:
            ids.append(channel_id)
    return ids


class SubscriptionStore:
    """Ordered subscription ids plus a favorites subset."""

    def __init__(self, preferences: Preferences) -> None:
        self._prefs = preferences

    @property
    def ids(self) -> list[str]:
        return self._prefs.subscription_ids

    @property
    def favorite_ids(self) -> list[str]:
        return self._prefs.favorite_channel_ids

    def add(self, channel_id: str) -> bool:
        """Append ``channel_id``.  Returns ``False`` for blanks and duplicates."""
        channel_id = channel_id.strip()
        ids = self.ids
        if not channel_id or channel_id in ids:
            return False
        ids.append(channel_id)
        self._prefs.subscription_ids = ids
        logger.info("subscriptions: added %s", channel_id)
        return True

    def remove(self, channel_ids: Iterable[str]) -> None:
        """Remove ids from both the subscription and the favorites lists."""
        doomed = set(channel_ids)
        self._prefs.subscription_ids = [cid for cid in self.ids if cid not in doomed]
        self._prefs.favorite_channel_ids = [cid for cid in self.favorite_ids if cid not in doomed]
        logger.info("subscriptions: removed %d channel(s)", len(doomed))

    def clear(self) -> None:
        self._prefs.subscription_ids = []
        self._prefs.favorite_channel_ids = []
        logger.info("subscriptions: all subscriptions cleared")

    def toggle_favorite(self, channel_id: str) -> bool:
        """Flip the favorite flag of ``channel_id`` and return the new state."""
        favorites = self.favorite_ids
        if channel_id in favorites:
            favorites.remove(channel_id)
            is_favorite = False
        else:
            favorites.append(channel_id)
            is_favorite = True
        self._prefs.favorite_channel_ids = favorites
        return is_favorite

    def is_favorite(self, channel_id: str) -> bool:
        return channel_id in self.favorite_ids

    def import_csv(self, content: str) -> int:
        """Replace the subscription list with the ids found in ``content``.

        The stored list is left untouched when the file yields no ids.

        Returns:
            Number of ids imported.
        """
        ids = parse_subscription_csv(content)
        if not ids:
            logger.warning("subscriptions: CSV parsed but no valid channel ids found")
            return 0
        self._prefs.subscription_ids = ids
        logger.info("subscriptions: CSV import: %d channel ids imported", len(ids))
        return len(ids)
