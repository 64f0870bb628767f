"""Unit tests for the structured logging configuration.

Verifies that ``configure_logging()`` produces well-formed JSON output and
that API keys never reach a rendered record in clear text.
"""

from __future__ import annotations

import json
import logging
from io import StringIO

from smalltube.core.logging_config import _redact_secrets, configure_logging, mask_key


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _capture_log_output(log_level: str, message: str, *args: object) -> str:
    """Emit a single log record and capture the raw text written by the root handler.

    Args:
        log_level: Logging level string (e.g. ``"INFO"``).
        message: Log message (``%``-style format string).
        *args: Positional arguments for the message.

    Returns:
        The raw text captured from the stream handler's output.
    """
    configure_logging(log_level)

    buffer = StringIO()
    root = logging.getLogger()
    original_streams = []
    for handler in root.handlers:
        if hasattr(handler, "stream"):
            original_streams.append((handler, handler.stream))
            handler.stream = buffer

    logging.getLogger("test.logging_config").info(message, *args)

    for handler, stream in original_streams:
        handler.flush()
        handler.stream = stream

    return buffer.getvalue()


def _records(output: str) -> list[dict]:
    return [json.loads(line) for line in output.strip().splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConfigureLoggingJson:
    """Verify INFO-level (production) JSON output."""

    def test_logging_produces_json(self) -> None:
        """configure_logging('INFO') emits valid JSON for each log record."""
        records = _records(_capture_log_output("INFO", "test_message_json"))
        assert records, "Expected at least one log line, got none"
        assert all(isinstance(r, dict) for r in records)

    def test_json_contains_required_fields(self) -> None:
        """Emitted JSON record contains event, timestamp, level, and logger fields."""
        records = _records(_capture_log_output("INFO", "required_fields_test"))
        target = next((r for r in records if r.get("event") == "required_fields_test"), None)
        assert target is not None, "Expected log record not found"

        assert "timestamp" in target
        assert target["level"] == "info"
        assert target["logger"] == "test.logging_config"

    def test_positional_args_are_formatted(self) -> None:
        records = _records(_capture_log_output("INFO", "cache: saved %s", "trending.json"))
        assert any(r.get("event") == "cache: saved trending.json" for r in records)

    def test_url_key_parameter_is_scrubbed(self) -> None:
        """A request URL logged verbatim has its ``key=`` value redacted."""
        url = "https://www.googleapis.com/youtube/v3/videos?part=snippet&key=AIzaSySecret123"
        output = _capture_log_output("INFO", "GET %s", url)

        assert "AIzaSySecret123" not in output
        assert "key=[REDACTED]" in output


class TestConfigureLoggingIdempotent:
    def test_calling_twice_does_not_duplicate_handlers(self) -> None:
        """Calling configure_logging() twice produces exactly one root handler."""
        configure_logging("INFO")
        configure_logging("INFO")
        assert len(logging.getLogger().handlers) == 1

    def test_httpx_quietened_outside_debug(self) -> None:
        configure_logging("INFO")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestRedactSecrets:
    def test_secret_named_fields_are_redacted(self) -> None:
        event = {"event": "x", "api_key": "AIza123", "Authorization": "Bearer t"}
        result = _redact_secrets(None, "info", event)
        assert result["api_key"] == "[REDACTED]"
        assert result["Authorization"] == "[REDACTED]"

    def test_nested_dict_one_level_deep(self) -> None:
        event = {"event": "x", "context": {"token": "t", "endpoint": "videos"}}
        result = _redact_secrets(None, "info", event)
        assert result["context"] == {"token": "[REDACTED]", "endpoint": "videos"}

    def test_other_fields_untouched(self) -> None:
        event = {"event": "cache: hit trending.json", "count": 3}
        assert _redact_secrets(None, "info", dict(event)) == event


class TestMaskKey:
    def test_keeps_first_eight_characters(self) -> None:
        assert mask_key("AIzaSyABCDEFGHIJK") == "AIzaSyAB..."

    def test_short_key(self) -> None:
        assert mask_key("abc") == "abc..."
