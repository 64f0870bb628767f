"""Tests for YouTube payload decoding and the cached domain models.

Uses the recorded fixtures under ``tests/fixtures/api_responses/youtube``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from smalltube.config.settings import ThumbnailQuality
from smalltube.core.exceptions import ResponseDecodeError
from smalltube.youtube.models import (
    BLANK_URL,
    Channel,
    ChannelListResponse,
    PlaylistItemsResponse,
    SearchResponse,
    Thumbnail,
    Video,
    VideoItem,
    VideoListResponse,
    choose_thumbnail,
    decode_html_entities,
    decode_response,
    parse_duration,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "api_responses" / "youtube"


def _fixture_bytes(name: str) -> bytes:
    return (FIXTURES_DIR / name).read_bytes()


def _fixture(name: str) -> dict[str, Any]:
    return json.loads(_fixture_bytes(name))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [
            ("PT1H30M15S", 5415),
            ("PT3M", 180),
            ("PT59S", 59),
            ("PT2H", 7200),
            ("PT1H5S", 3605),
            ("PT0S", 0),
            ("P1DT2H", 0),
            ("", 0),
            ("garbage", 0),
        ],
    )
    def test_parse(self, value: str, seconds: int) -> None:
        assert parse_duration(value) == seconds


class TestDecodeHtmlEntities:
    def test_known_entities(self) -> None:
        assert decode_html_entities("Tom &amp; Jerry&#39;s &quot;Day&quot; &lt;1&gt;") == (
            "Tom & Jerry's \"Day\" <1>"
        )

    def test_apos(self) -> None:
        assert decode_html_entities("it&apos;s") == "it's"

    def test_plain_text_unchanged(self) -> None:
        assert decode_html_entities("Grüße aus København") == "Grüße aus København"


class TestChooseThumbnail:
    THUMBS = {
        "default": Thumbnail(url="d"),
        "medium": Thumbnail(url="m"),
        "high": Thumbnail(url="h"),
        "standard": Thumbnail(url="s"),
        "maxres": Thumbnail(url="x"),
    }

    @pytest.mark.parametrize(
        ("quality", "expected"),
        [
            (ThumbnailQuality.HIGH, "x"),
            (ThumbnailQuality.MEDIUM, "h"),
            (ThumbnailQuality.LOW, "m"),
        ],
    )
    def test_preference_order(self, quality: ThumbnailQuality, expected: str) -> None:
        assert choose_thumbnail(self.THUMBS, quality) == expected

    def test_falls_back_down_the_list(self) -> None:
        assert choose_thumbnail({"default": Thumbnail(url="d")}, ThumbnailQuality.HIGH) == "d"

    def test_no_thumbnails_is_blank(self) -> None:
        assert choose_thumbnail({}, ThumbnailQuality.LOW) == BLANK_URL

    def test_channel_order_without_quality(self) -> None:
        assert choose_thumbnail(self.THUMBS) == "h"


# ---------------------------------------------------------------------------
# Wire decoding
# ---------------------------------------------------------------------------


class TestVideoItem:
    def test_plain_string_id(self) -> None:
        response = decode_response(VideoListResponse, _fixture_bytes("videos_list_response.json"))
        assert [item.id for item in response.items] == ["vid_long_001", "vid_short_002", "vid_mid_003"]

    def test_object_id_from_search(self) -> None:
        response = decode_response(VideoListResponse, _fixture_bytes("search_list_response.json"))
        assert [item.id for item in response.items] == ["vid_long_001", "vid_mid_003"]

    def test_object_id_without_video_id_is_rejected(self) -> None:
        payload = {
            "items": [
                {
                    "id": {"kind": "youtube#channel", "channelId": "UC1"},
                    "snippet": {"title": "t", "publishedAt": "2025-01-01T00:00:00Z"},
                }
            ]
        }
        with pytest.raises(ResponseDecodeError):
            decode_response(VideoListResponse, json.dumps(payload).encode(), "search")

    def test_duration_and_view_count(self) -> None:
        item = VideoItem.model_validate(_fixture("videos_list_response.json")["items"][0])
        assert item.duration_seconds == 3723
        assert item.view_count == 123456

    def test_missing_optional_parts(self) -> None:
        item = VideoItem.model_validate(
            {"id": "v", "snippet": {"title": "t", "publishedAt": "2025-01-01T00:00:00Z"}}
        )
        assert item.duration_seconds is None
        assert item.view_count is None


class TestDecodeResponse:
    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ResponseDecodeError) as exc_info:
            decode_response(VideoListResponse, b"<html>", "videos")
        assert exc_info.value.endpoint == "videos"

    def test_missing_items_is_empty(self) -> None:
        assert decode_response(VideoListResponse, b"{}").items == []

    def test_channels_list(self) -> None:
        response = decode_response(ChannelListResponse, _fixture_bytes("channels_list_response.json"))
        assert response.items[0].uploads_playlist_id == "UUchannel00001"
        assert response.items[1].uploads_playlist_id is None
        assert response.items[0].statistics.subscriber_count == 25000

    def test_playlist_items(self) -> None:
        response = decode_response(
            PlaylistItemsResponse, _fixture_bytes("playlist_items_response.json")
        )
        assert [i.snippet.resource_id.video_id for i in response.items] == [
            "vid_long_001",
            "vid_short_002",
        ]


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class TestVideo:
    def _first_item(self) -> VideoItem:
        return VideoItem.model_validate(_fixture("videos_list_response.json")["items"][0])

    def test_from_item_maps_fields(self) -> None:
        video = Video.from_item(self._first_item())

        assert video.id == "vid_long_001"
        assert video.title == 'Tom & Jerry\'s "Big" Day'
        assert video.description == "A long-form video."
        assert video.channel_id == "UCchannel00001"
        assert video.channel_title == "Cartoon Archive"
        assert video.published_at == datetime(2025, 3, 10, 14, 0, tzinfo=timezone.utc)
        assert video.duration_seconds == 3723
        assert video.view_count == 123456
        assert video.channel_icon_url is None

    def test_from_item_honours_thumbnail_quality(self) -> None:
        item = self._first_item()
        assert Video.from_item(item, ThumbnailQuality.HIGH).thumbnail_url.endswith("maxresdefault.jpg")
        assert Video.from_item(item, ThumbnailQuality.MEDIUM).thumbnail_url.endswith("hqdefault.jpg")
        assert Video.from_item(item, ThumbnailQuality.LOW).thumbnail_url.endswith("mqdefault.jpg")

    def test_json_round_trip(self) -> None:
        video = Video.from_item(self._first_item())
        assert Video.model_validate_json(video.model_dump_json()) == video


class TestChannel:
    def test_from_item(self) -> None:
        response = decode_response(ChannelListResponse, _fixture_bytes("channels_list_response.json"))
        channel = Channel.from_item(response.items[0])

        assert channel.id == "UCchannel00001"
        assert channel.title == "Cartoon Archive"
        assert channel.thumbnail_url == "https://yt3.ggpht.com/c1/medium.jpg"
        assert channel.custom_url == "@cartoonarchive"
        assert channel.video_count == 310

    def test_from_search_item_skips_missing_id(self) -> None:
        response = decode_response(SearchResponse, _fixture_bytes("channel_search_response.json"))
        channels = [Channel.from_search_item(item) for item in response.items]

        assert channels[0] is not None
        assert channels[0].id == "UCchannel00001"
        assert channels[0].thumbnail_url == "https://yt3.ggpht.com/c1/high.jpg"
        assert channels[1] is None

    def test_placeholder(self) -> None:
        channel = Channel.placeholder("UCabcdefghijkl")
        assert channel.title == "Channel UCabcdef"
        assert channel.description == "Loading..."
        assert channel.thumbnail_url == BLANK_URL
