"""Tests for the recent-search history."""

from __future__ import annotations

from smalltube.core.state import Preferences
from smalltube.youtube.history import SearchHistory


class TestSearchHistory:
    def test_most_recent_first(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences)
        history.record("cats")
        history.record("dogs")
        assert history.entries == ["dogs", "cats"]

    def test_case_insensitive_duplicate_moves_to_front(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences)
        history.record("Cats")
        history.record("dogs")
        history.record("cats ")
        assert history.entries == ["cats", "dogs"]

    def test_blank_query_ignored(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences)
        history.record("   ")
        assert history.entries == []

    def test_truncated_to_limit(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences, limit=3)
        for query in ("a1", "a2", "a3", "a4"):
            history.record(query)
        assert history.entries == ["a4", "a3", "a2"]

    def test_suggestions(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences)
        for query in ("jazz piano", "Piano tutorial", "drums"):
            history.record(query)

        assert history.suggestions("PIANO") == ["Piano tutorial", "jazz piano"]
        assert history.suggestions("") == ["drums", "Piano tutorial", "jazz piano"]

    def test_remove_and_clear(self, preferences: Preferences) -> None:
        history = SearchHistory(preferences)
        history.record("cats")
        history.record("dogs")

        history.remove("cats")
        assert history.entries == ["dogs"]

        history.clear()
        assert history.entries == []
