"""Ordered API key pool backed by the secret store.

The pool is configured as one comma-delimited string.  Order matters: it is
the rotation order and it survives restarts together with the persisted
``current_index``.

Key resolution order for the raw string:

1. The secret store (``apiKey``).
2. A legacy plaintext value in the state store, migrated into the secret
   store on first read.
3. The ``SMALLTUBE_YOUTUBE_API_KEYS`` environment fallback (never written
   back).
"""

from __future__ import annotations

import logging

from smalltube.core.logging_config import mask_key
from smalltube.core.secret_store import API_KEYS_SECRET, SecretStore
from smalltube.core.state import Preferences
from smalltube.core.usage import UsageTracker

logger = logging.getLogger(__name__)


def parse_api_keys(raw: str) -> list[str]:
    """Split a comma-delimited key string, trimming entries and dropping empties."""
    return [part.strip() for part in raw.split(",") if part.strip()]


class ApiKeyPool:
    """Rotation-ordered list of API keys with a persisted current index.

    Args:
        secrets: Secret store holding the raw key string.
        preferences: Typed state accessors (index, labels, legacy key).
        usage: Usage tracker, updated when keys are renamed or removed.
        env_fallback: Raw key string used when nothing is stored.
    """

    def __init__(
        self,
        secrets: SecretStore,
        preferences: Preferences,
        usage: UsageTracker | None = None,
        env_fallback: str = "",
    ) -> None:
        self._secrets = secrets
        self._prefs = preferences
        self._usage = usage
        self._env_fallback = env_fallback

    # ------------------------------------------------------------------
    # Raw configuration string
    # ------------------------------------------------------------------

    @property
    def raw(self) -> str:
        stored = self._secrets.get(API_KEYS_SECRET)
        if stored:
            return stored
        legacy = self._prefs.legacy_api_key
        if legacy:
            self._secrets.set(API_KEYS_SECRET, legacy)
            self._prefs.clear_legacy_api_key()
            logger.info("api_keys: migrated legacy plaintext key string to the secret store")
            return legacy
        return self._env_fallback

    @raw.setter
    def raw(self, value: str) -> None:
        self._secrets.set(API_KEYS_SECRET, value)

    @property
    def keys(self) -> list[str]:
        return parse_api_keys(self.raw)

    def __len__(self) -> int:
        return len(self.keys)

    def __bool__(self) -> bool:
        return bool(self.keys)

    # ------------------------------------------------------------------
    # Current index
    # ------------------------------------------------------------------

    @property
    def current_index(self) -> int:
        """Persisted index, normalized to 0 when out of range."""
        count = len(self.keys)
        index = self._prefs.current_api_key_index
        if count == 0 or not 0 <= index < count:
            return 0
        return index

    @current_index.setter
    def current_index(self, value: int) -> None:
        self._prefs.current_api_key_index = value

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_key(self, key: str) -> bool:
        """Append ``key`` to the pool.  Returns ``False`` for blanks and duplicates."""
        key = key.strip()
        keys = self.keys
        if not key or key in keys:
            return False
        keys.append(key)
        self.raw = ",".join(keys)
        logger.info("api_keys: added key %s", mask_key(key))
        return True

    def remove_key(self, key: str) -> bool:
        """Remove ``key`` and forget its usage, limit and label."""
        keys = self.keys
        if key not in keys:
            return False
        keys.remove(key)
        self.raw = ",".join(keys)
        names = self._prefs.api_key_names
        if names.pop(key, None) is not None:
            self._prefs.api_key_names = names
        if self._usage is not None:
            self._usage.forget_key(key)
        if self._prefs.current_api_key_index >= len(keys):
            self._prefs.current_api_key_index = 0
        logger.info("api_keys: removed key %s", mask_key(key))
        return True

    def rename_key(self, old: str, new: str) -> bool:
        """Replace ``old`` with ``new`` in place, keeping its rotation slot.

        Usage, limit and label move with the key.
        """
        new = new.strip()
        keys = self.keys
        if old not in keys or not new or (new != old and new in keys):
            return False
        keys[keys.index(old)] = new
        self.raw = ",".join(keys)
        names = self._prefs.api_key_names
        if old in names:
            names[new] = names.pop(old)
            self._prefs.api_key_names = names
        if self._usage is not None:
            self._usage.move_key(old, new)
        return True

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def label_for(self, key: str) -> str:
        """Return the user label for ``key``, or its masked form."""
        return self._prefs.api_key_names.get(key) or mask_key(key)

    def set_label(self, key: str, label: str) -> None:
        names = self._prefs.api_key_names
        if label.strip():
            names[key] = label.strip()
        else:
            names.pop(key, None)
        self._prefs.api_key_names = names
