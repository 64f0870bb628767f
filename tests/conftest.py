"""Shared pytest fixtures for SmallTube tests.

Fixture summary
---------------
clock           — Controllable Unix-time source (``FakeClock``).
state_store     — Empty in-memory state store.
preferences     — Typed accessors over ``state_store``.
secrets         — Empty in-memory secret store.
usage           — ``UsageTracker`` driven by ``clock``.
make_pool       — Factory building an ``ApiKeyPool`` from a list of keys.
cache_dir       — Per-test temporary cache directory.

Every test runs without network access; HTTP is mocked with respx.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from smalltube.core.api_keys import ApiKeyPool
from smalltube.core.secret_store import API_KEYS_SECRET, InMemorySecretStore
from smalltube.core.state import InMemoryStateStore, Preferences
from smalltube.core.usage import UsageTracker

API_BASE = "https://www.googleapis.com/youtube/v3"
FIXTURES_DIR = Path(__file__).parent / "fixtures" / "api_responses" / "youtube"

# 2025-03-15T12:00:00Z
DEFAULT_NOW = 1742040000.0


def load_fixture(name: str) -> dict[str, Any]:
    """Load a recorded API response from ``tests/fixtures/api_responses/youtube``."""
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


class FakeClock:
    """Callable returning a settable Unix timestamp."""

    def __init__(self, now: float = DEFAULT_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def preferences(state_store: InMemoryStateStore) -> Preferences:
    return Preferences(state_store)


@pytest.fixture
def secrets() -> InMemorySecretStore:
    return InMemorySecretStore()


@pytest.fixture
def usage(preferences: Preferences, clock: FakeClock) -> UsageTracker:
    return UsageTracker(preferences, clock=clock)


@pytest.fixture
def make_pool(
    secrets: InMemorySecretStore,
    preferences: Preferences,
    usage: UsageTracker,
) -> Callable[..., ApiKeyPool]:
    """Return a factory: ``make_pool(["A", "B"], current_index=1)``."""

    def _make(keys: list[str], current_index: int | None = None) -> ApiKeyPool:
        if keys:
            secrets.set(API_KEYS_SECRET, ",".join(keys))
        if current_index is not None:
            preferences.current_api_key_index = current_index
        return ApiKeyPool(secrets, preferences, usage=usage)

    return _make


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path
