"""Tests for the ``smalltube`` command-line entry point.

Each test points ``SMALLTUBE_DATA_DIR`` at a temporary directory, so every
``main()`` call builds a fresh context over the same on-disk state, the
way separate invocations would.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import httpx
import pytest
import respx
from cryptography.fernet import Fernet

from smalltube.cli import _format_duration, main
from smalltube.config.settings import get_settings

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "api_responses" / "youtube"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Isolated data directory with an encrypted secret store."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SMALLTUBE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SMALLTUBE_CREDENTIAL_ENCRYPTION_KEY", Fernet.generate_key().decode())
    monkeypatch.delenv("SMALLTUBE_YOUTUBE_API_KEYS", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestKeysCommand:
    def test_add_then_list(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["keys", "add", "AIzaSyTESTKEY0001", "--label", "primary"]) == 0
        assert "added AIzaSyTE..." in capsys.readouterr().out

        assert main(["keys", "list"]) == 0
        out = capsys.readouterr().out
        assert "primary" in out
        assert "0/10000" in out
        assert "AIzaSyTESTKEY0001" not in out

    def test_duplicate_key_rejected(self) -> None:
        assert main(["keys", "add", "AIzaSyTESTKEY0001"]) == 0
        assert main(["keys", "add", "AIzaSyTESTKEY0001"]) == 1

    def test_remove_unknown_key(self) -> None:
        assert main(["keys", "remove", "AIzaSyUNKNOWN"]) == 1

    def test_limit_shows_in_usage(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["keys", "add", "AIzaSyTESTKEY0001"])
        assert main(["keys", "limit", "AIzaSyTESTKEY0001", "500"]) == 0
        capsys.readouterr()

        assert main(["usage"]) == 0
        out = capsys.readouterr().out
        assert "total quota used: 0" in out
        assert "0/500" in out

    @respx.mock
    def test_validate_marks_each_key(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["keys", "add", "AIzaSyGOODKEY0001", "--label", "good"])
        main(["keys", "add", "AIzaSyBADKEY00002", "--label", "bad"])
        capsys.readouterr()
        respx.get(VIDEOS_URL, params={"key": "AIzaSyGOODKEY0001"}).mock(
            return_value=httpx.Response(200, json={"items": []})
        )
        respx.get(VIDEOS_URL, params={"key": "AIzaSyBADKEY00002"}).mock(
            return_value=httpx.Response(
                400, content=(FIXTURES_DIR / "error_bad_request.json").read_bytes()
            )
        )

        assert main(["keys", "validate"]) == 1

        out = capsys.readouterr().out
        assert "ok   good" in out
        assert "BAD  bad" in out

        assert main(["usage"]) == 0
        assert "total quota used: 0" in capsys.readouterr().out

    def test_validate_without_keys_is_api_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["keys", "validate"]) == 1
        assert "api_error" in capsys.readouterr().err


class TestNetworkCommands:
    def test_blank_search_is_empty_query(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["search", "   "]) == 1
        assert "empty_query" in capsys.readouterr().err

    def test_missing_key_is_api_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["trending"]) == 1
        assert "api_error" in capsys.readouterr().err

    @respx.mock
    def test_trending_prints_videos(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SMALLTUBE_YOUTUBE_API_KEYS", "AIzaSyENVKEY00001")
        get_settings.cache_clear()
        respx.get(VIDEOS_URL).mock(
            return_value=httpx.Response(
                200, content=(FIXTURES_DIR / "videos_list_response.json").read_bytes()
            )
        )

        assert main(["trending"]) == 0

        out = capsys.readouterr().out
        assert "Tom & Jerry's \"Big\" Day" in out
        assert "https://www.youtube.com/watch?v=vid_long_001" in out
        assert "1:02:03" in out

    @respx.mock
    def test_quota_exhaustion_alert(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SMALLTUBE_YOUTUBE_API_KEYS", "AIzaSyENVKEY00001")
        get_settings.cache_clear()
        respx.get(VIDEOS_URL).mock(
            return_value=httpx.Response(
                403, content=(FIXTURES_DIR / "error_quota_exceeded.json").read_bytes()
            )
        )

        assert main(["trending"]) == 1
        assert "quota_exceeded" in capsys.readouterr().err

    @respx.mock
    def test_decoding_error_is_api_error(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SMALLTUBE_YOUTUBE_API_KEYS", "AIzaSyENVKEY00001")
        get_settings.cache_clear()
        respx.get(VIDEOS_URL).mock(side_effect=httpx.DecodingError("bad gzip"))

        assert main(["trending"]) == 1
        assert "api_error" in capsys.readouterr().err


class TestLocalCommands:
    def test_subscription_import_and_favorite(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        csv_path = cli_env / "subscriptions.csv"
        csv_path.write_text(
            "Channel Id,Channel Url,Channel Title\n"
            "UCchannel00001,http://www.youtube.com/channel/UCchannel00001,One\n"
            "UCchannel00002,http://www.youtube.com/channel/UCchannel00002,Two\n",
            encoding="utf-8",
        )

        assert main(["subscriptions", "import", str(csv_path)]) == 0
        assert "imported 2 channel ids" in capsys.readouterr().out

        assert main(["subscriptions", "favorite", "UCchannel00001"]) == 0
        assert "UCchannel00001 favorited" in capsys.readouterr().out

    def test_import_without_ids_fails(self, cli_env: Path) -> None:
        csv_path = cli_env / "empty.csv"
        csv_path.write_text("Channel Id\n", encoding="utf-8")
        assert main(["subscriptions", "import", str(csv_path)]) == 1

    def test_cache_timeout_round_trip(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["cache-timeout"]) == 0
        assert capsys.readouterr().out.strip() == "5 Minutes"

        assert main(["cache-timeout", "3600"]) == 0
        assert main(["cache-timeout"]) == 0
        assert capsys.readouterr().out.strip() == "1 Hour"

    def test_invalid_cache_timeout_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["cache-timeout", "42"])
        assert exc_info.value.code == 2

    def test_history_empty(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["history"]) == 0
        assert capsys.readouterr().out == ""


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("seconds", "text"),
        [(None, "--:--"), (59, "0:59"), (180, "3:00"), (3723, "1:02:03")],
    )
    def test_format(self, seconds: int | None, text: str) -> None:
        assert _format_duration(seconds) == text
