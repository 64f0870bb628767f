"""Tests for the subscription store and the Takeout CSV importer."""

from __future__ import annotations

from smalltube.core.state import Preferences
from smalltube.youtube.subscriptions import SubscriptionStore, parse_subscription_csv

TAKEOUT_CSV = (
    "Channel Id,Channel Url,Channel Title\n"
    "UCchannel00001,http://www.youtube.com/channel/UCchannel00001,Cartoon Archive\n"
    "  UCchannel00002 ,http://www.youtube.com/channel/UCchannel00002,Second Channel\n"
    "short,http://www.youtube.com/channel/short,Too Short\n"
    "\n"
    "UCchannel00003\n"
)


class TestParseSubscriptionCsv:
    def test_skips_header_and_short_values(self) -> None:
        assert parse_subscription_csv(TAKEOUT_CSV) == [
            "UCchannel00001",
            "UCchannel00002",
            "UCchannel00003",
        ]

    def test_six_characters_is_enough(self) -> None:
        assert parse_subscription_csv("id\nabcdef\nabcde\n") == ["abcdef"]

    def test_header_only(self) -> None:
        assert parse_subscription_csv("Channel Id,Channel Url,Channel Title\n") == []

    def test_empty(self) -> None:
        assert parse_subscription_csv("") == []


class TestSubscriptionStore:
    def test_add_appends_and_rejects_duplicates(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        assert store.add("UCchannel00001") is True
        assert store.add(" UCchannel00001 ") is False
        assert store.add("   ") is False
        assert store.add("UCchannel00002") is True
        assert store.ids == ["UCchannel00001", "UCchannel00002"]

    def test_remove_also_drops_favorites(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        store.add("UCchannel00001")
        store.add("UCchannel00002")
        store.toggle_favorite("UCchannel00001")

        store.remove(["UCchannel00001"])

        assert store.ids == ["UCchannel00002"]
        assert store.favorite_ids == []

    def test_toggle_favorite(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        assert store.toggle_favorite("UCchannel00001") is True
        assert store.is_favorite("UCchannel00001")
        assert store.toggle_favorite("UCchannel00001") is False
        assert not store.is_favorite("UCchannel00001")

    def test_clear(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        store.add("UCchannel00001")
        store.toggle_favorite("UCchannel00001")
        store.clear()
        assert store.ids == []
        assert store.favorite_ids == []

    def test_import_csv_replaces_list(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        store.add("UColdchannel1")

        assert store.import_csv(TAKEOUT_CSV) == 3
        assert store.ids == ["UCchannel00001", "UCchannel00002", "UCchannel00003"]

    def test_import_without_ids_keeps_list(self, preferences: Preferences) -> None:
        store = SubscriptionStore(preferences)
        store.add("UColdchannel1")

        assert store.import_csv("Channel Id\nabc\n") == 0
        assert store.ids == ["UColdchannel1"]

    def test_persisted_through_preferences(self, preferences: Preferences) -> None:
        SubscriptionStore(preferences).add("UCchannel00001")
        assert SubscriptionStore(preferences).ids == ["UCchannel00001"]
