"""Recent search queries, most recent first."""

from __future__ import annotations

from smalltube.core.state import Preferences
from smalltube.youtube.config import MAX_SEARCH_HISTORY


class SearchHistory:
    def __init__(self, preferences: Preferences, limit: int = MAX_SEARCH_HISTORY) -> None:
        self._prefs = preferences
        self._limit = limit

    @property
    def entries(self) -> list[str]:
        return self._prefs.last_searches

    def record(self, query: str) -> None:
        """Move ``query`` to the front, dropping case-insensitive duplicates."""
        query = query.strip()
        if not query:
            return
        folded = query.casefold()
        entries = [entry for entry in self.entries if entry.casefold() != folded]
        entries.insert(0, query)
        self._prefs.last_searches = entries[: self._limit]

    def suggestions(self, prefix: str) -> list[str]:
        """Past queries containing ``prefix`` (case-insensitive); all of them if empty."""
        if not prefix:
            return self.entries
        folded = prefix.casefold()
        return [entry for entry in self.entries if folded in entry.casefold()]

    def remove(self, query: str) -> None:
        self._prefs.last_searches = [entry for entry in self.entries if entry != query]

    def clear(self) -> None:
        self._prefs.last_searches = []
