"""Persistent settings boundary: a key-value state store plus typed accessors.

The store itself only offers ``get`` / ``set`` / ``delete`` on JSON-compatible
values; atomicity is per individual key write, nothing is transactional.
:class:`Preferences` centralises the key strings and provides typed
accessors for everything the core persists (current key index, quota usage
and limits, byte counter, ...).  Never use raw key strings outside this
module.

Two stores are provided:

- :class:`JsonFileStateStore` — a single JSON document on disk, rewritten
  atomically (temp file + ``os.replace``) on every mutation.
- :class:`InMemoryStateStore` — a dict, for tests and ephemeral sessions.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from smalltube.config.settings import CacheTimeout

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store protocol and implementations
# ---------------------------------------------------------------------------


class StateStore(Protocol):
    """Minimal key-value interface consumed by the core components."""

    def get(self, name: str, default: Any = None) -> Any: ...

    def set(self, name: str, value: Any) -> None: ...

    def delete(self, name: str) -> None: ...


class InMemoryStateStore:
    """Dict-backed :class:`StateStore` used in tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._data[name] = value

    def delete(self, name: str) -> None:
        self._data.pop(name, None)


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers never observe a partial file.

    The bytes go to a temporary file in the same directory which then
    replaces ``path`` via :func:`os.replace`.

    Raises:
        OSError: If the directory cannot be created or the write fails.
            The temporary file is removed and ``path`` is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class JsonFileStateStore:
    """:class:`StateStore` persisted as one JSON document.

    The document is read once at construction.  A missing file starts an
    empty store; an unreadable or corrupt file is logged and also starts
    empty (the next write replaces it).

    Args:
        path: Location of the JSON document.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: dict[str, Any] = self._read()

    def _read(self) -> dict[str, Any]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("state: cannot read %s: %s", self._path, exc)
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("state: corrupt state file %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("state: unexpected state document type in %s", self._path)
            return {}
        return data

    def _flush(self) -> None:
        write_atomic(self._path, json.dumps(self._data, indent=2, sort_keys=True).encode("utf-8"))

    def get(self, name: str, default: Any = None) -> Any:
        return self._data.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._data[name] = value
        self._flush()

    def delete(self, name: str) -> None:
        if self._data.pop(name, None) is not None:
            self._flush()


# ---------------------------------------------------------------------------
# Typed accessors
# ---------------------------------------------------------------------------


class Preferences:
    """Typed accessors over a :class:`StateStore`.

    Integer and mapping values are coerced defensively: a value of the wrong
    type in the store reads back as the accessor's default instead of
    raising.
    """

    LEGACY_API_KEY = "apiKey"
    CURRENT_API_KEY_INDEX = "currentApiKeyIndex"
    CACHE_TIMEOUT = "cacheTimeout"
    TOTAL_DATA_BYTES_USED = "totalDataBytesUsed"
    API_QUOTA_USAGE = "apiQuotaUsage"
    API_QUOTA_LIMITS = "apiQuotaLimits"
    API_KEY_NAMES = "apiKeyNames"
    LAST_QUOTA_RESET_DATE = "lastQuotaResetDate"
    LAST_SEARCHES = "lastSearches"
    SUBSCRIPTION_IDS = "storedSubscriptionIds"
    FAVORITE_CHANNEL_IDS = "favoriteChannelIds"

    def __init__(self, store: StateStore) -> None:
        self.store = store

    # -- scalar helpers -------------------------------------------------

    def _get_int(self, name: str, default: int = 0) -> int:
        value = self.store.get(name)
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    def _get_int_map(self, name: str) -> dict[str, int]:
        value = self.store.get(name)
        if not isinstance(value, dict):
            return {}
        return {
            str(k): int(v)
            for k, v in value.items()
            if isinstance(v, int) and not isinstance(v, bool)
        }

    def _get_str_list(self, name: str) -> list[str]:
        value = self.store.get(name)
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str)]

    # -- key rotation ---------------------------------------------------

    @property
    def current_api_key_index(self) -> int:
        return self._get_int(self.CURRENT_API_KEY_INDEX)

    @current_api_key_index.setter
    def current_api_key_index(self, value: int) -> None:
        self.store.set(self.CURRENT_API_KEY_INDEX, int(value))

    @property
    def legacy_api_key(self) -> str | None:
        value = self.store.get(self.LEGACY_API_KEY)
        return value if isinstance(value, str) and value else None

    def clear_legacy_api_key(self) -> None:
        self.store.delete(self.LEGACY_API_KEY)

    @property
    def api_key_names(self) -> dict[str, str]:
        value = self.store.get(self.API_KEY_NAMES)
        if not isinstance(value, dict):
            return {}
        return {str(k): str(v) for k, v in value.items()}

    @api_key_names.setter
    def api_key_names(self, value: dict[str, str]) -> None:
        self.store.set(self.API_KEY_NAMES, dict(value))

    # -- quota accounting -----------------------------------------------

    @property
    def api_quota_usage(self) -> dict[str, int]:
        return self._get_int_map(self.API_QUOTA_USAGE)

    @api_quota_usage.setter
    def api_quota_usage(self, value: dict[str, int]) -> None:
        self.store.set(self.API_QUOTA_USAGE, dict(value))

    @property
    def api_quota_limits(self) -> dict[str, int]:
        return self._get_int_map(self.API_QUOTA_LIMITS)

    @api_quota_limits.setter
    def api_quota_limits(self, value: dict[str, int]) -> None:
        self.store.set(self.API_QUOTA_LIMITS, dict(value))

    @property
    def total_data_bytes_used(self) -> int:
        return self._get_int(self.TOTAL_DATA_BYTES_USED)

    @total_data_bytes_used.setter
    def total_data_bytes_used(self, value: int) -> None:
        self.store.set(self.TOTAL_DATA_BYTES_USED, int(value))

    @property
    def last_quota_reset_date(self) -> datetime | None:
        value = self.store.get(self.LAST_QUOTA_RESET_DATE)
        if not isinstance(value, str):
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    @last_quota_reset_date.setter
    def last_quota_reset_date(self, value: datetime | None) -> None:
        if value is None:
            self.store.delete(self.LAST_QUOTA_RESET_DATE)
        else:
            self.store.set(self.LAST_QUOTA_RESET_DATE, value.isoformat())

    # -- cache policy ---------------------------------------------------

    def cache_timeout(self, default: CacheTimeout = CacheTimeout.FIVE_MINUTES) -> CacheTimeout:
        """Return the user's TTL choice, or ``default`` when never set or invalid."""
        value = self.store.get(self.CACHE_TIMEOUT)
        if value is None:
            return default
        try:
            return CacheTimeout(int(value))
        except (TypeError, ValueError):
            return default

    def set_cache_timeout(self, value: CacheTimeout) -> None:
        self.store.set(self.CACHE_TIMEOUT, int(value))

    # -- lists ----------------------------------------------------------

    @property
    def last_searches(self) -> list[str]:
        return self._get_str_list(self.LAST_SEARCHES)

    @last_searches.setter
    def last_searches(self, value: list[str]) -> None:
        self.store.set(self.LAST_SEARCHES, list(value))

    @property
    def subscription_ids(self) -> list[str]:
        return self._get_str_list(self.SUBSCRIPTION_IDS)

    @subscription_ids.setter
    def subscription_ids(self, value: list[str]) -> None:
        self.store.set(self.SUBSCRIPTION_IDS, list(value))

    @property
    def favorite_channel_ids(self) -> list[str]:
        return self._get_str_list(self.FAVORITE_CHANNEL_IDS)

    @favorite_channel_ids.setter
    def favorite_channel_ids(self, value: list[str]) -> None:
        self.store.set(self.FAVORITE_CHANNEL_IDS, list(value))
