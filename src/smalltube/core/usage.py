"""Usage accounting: persisted per-key quota units and transferred bytes.

Pure bookkeeping.  The only control flow that depends on it is the
eligibility check the fetch client performs before trying a key.

Counters are read-modify-written without locking.  Concurrent fetches may
lose an increment; the figures are an observability aid, not a billing
ledger.

Quota day rollover
------------------
The YouTube Data API resets every key's quota at midnight Pacific time.
With ``auto_reset`` enabled, usage is cleared the first time it is read or
written on a new calendar day in ``reset_timezone``.  A manual
:meth:`UsageTracker.reset_all` is always available.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

import httpx

from smalltube.core.logging_config import mask_key
from smalltube.core.state import Preferences

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_LIMIT: int = 10_000
"""Daily quota units granted per GCP project key."""

SEARCH_QUOTA_COST: int = 100
"""Quota units charged for one ``search.list`` call."""

DEFAULT_QUOTA_COST: int = 1
"""Quota units charged for any other list call."""


def estimate_quota_cost(url: str | httpx.URL) -> int:
    """Return the quota units a request to ``url`` is expected to cost.

    Any URL whose path contains a ``/search`` segment costs 100 units,
    everything else costs 1, mirroring the published cost schedule.
    """
    path = httpx.URL(str(url)).path
    return SEARCH_QUOTA_COST if "/search" in path else DEFAULT_QUOTA_COST


class UsageTracker:
    """Per-key quota usage and total byte counter over :class:`Preferences`.

    Args:
        preferences: Typed state accessors; all reads and writes go through it.
        default_limit: Ceiling applied to keys with no explicit limit.
        auto_reset: Clear usage on a new quota day (see module docstring).
        reset_timezone: IANA timezone of the quota day boundary.
        clock: Returns the current Unix time.  Injected for tests.
    """

    def __init__(
        self,
        preferences: Preferences,
        *,
        default_limit: int = DEFAULT_QUOTA_LIMIT,
        auto_reset: bool = True,
        reset_timezone: str = "America/Los_Angeles",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._prefs = preferences
        self._default_limit = default_limit
        self._auto_reset = auto_reset
        self._tz = ZoneInfo(reset_timezone)
        self._clock = clock

    # ------------------------------------------------------------------
    # Quota day rollover
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def check_and_reset_if_needed(self) -> bool:
        """Clear usage if the quota day has rolled over since the last check.

        The first check ever only records the current time; existing usage
        is kept because there is no evidence it is stale.

        Returns:
            ``True`` if usage was cleared.
        """
        if not self._auto_reset:
            return False
        now = self._now()
        last = self._prefs.last_quota_reset_date
        reset = False
        if last is not None:
            if last.tzinfo is None:
                last = last.replace(tzinfo=timezone.utc)
            if last.astimezone(self._tz).date() != now.astimezone(self._tz).date():
                self._prefs.api_quota_usage = {}
                reset = True
                logger.info("usage: quota day rolled over, per-key usage cleared")
        if last is None or reset:
            self._prefs.last_quota_reset_date = now
        return reset

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def usage_for(self, key: str) -> int:
        self.check_and_reset_if_needed()
        return self._prefs.api_quota_usage.get(key, 0)

    def limit_for(self, key: str) -> int:
        return self._prefs.api_quota_limits.get(key, self._default_limit)

    def is_eligible(self, key: str) -> bool:
        """Return ``True`` while the key's usage is below its ceiling."""
        return self.usage_for(key) < self.limit_for(key)

    @property
    def usage_by_key(self) -> dict[str, int]:
        self.check_and_reset_if_needed()
        return self._prefs.api_quota_usage

    @property
    def total_quota_used(self) -> int:
        return sum(self.usage_by_key.values())

    @property
    def total_bytes_used(self) -> int:
        return self._prefs.total_data_bytes_used

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def increment_usage(self, key: str, cost: int) -> None:
        """Add ``cost`` units to the key's usage and persist immediately."""
        self.check_and_reset_if_needed()
        usage = self._prefs.api_quota_usage
        usage[key] = usage.get(key, 0) + cost
        self._prefs.api_quota_usage = usage
        logger.debug("usage: key %s +%d units (now %d)", mask_key(key), cost, usage[key])

    def mark_exhausted(self, key: str) -> None:
        """Raise the key's usage to its ceiling so rotation skips it."""
        self.check_and_reset_if_needed()
        usage = self._prefs.api_quota_usage
        usage[key] = max(usage.get(key, 0), self.limit_for(key))
        self._prefs.api_quota_usage = usage
        logger.warning("usage: key %s marked exhausted", mask_key(key))

    def add_bytes(self, count: int) -> None:
        self._prefs.total_data_bytes_used = self._prefs.total_data_bytes_used + count

    def set_limit(self, key: str, limit: int) -> None:
        """Set an explicit ceiling for ``key``.

        Raises:
            ValueError: If ``limit`` is negative.
        """
        if limit < 0:
            raise ValueError(f"Quota limit must be >= 0, got {limit}")
        limits = self._prefs.api_quota_limits
        limits[key] = limit
        self._prefs.api_quota_limits = limits

    def forget_key(self, key: str) -> None:
        """Drop the usage and limit entries of a key removed from the pool."""
        usage = self._prefs.api_quota_usage
        if usage.pop(key, None) is not None:
            self._prefs.api_quota_usage = usage
        limits = self._prefs.api_quota_limits
        if limits.pop(key, None) is not None:
            self._prefs.api_quota_limits = limits

    def move_key(self, old: str, new: str) -> None:
        """Carry usage and limit over when a key string is edited in place."""
        usage = self._prefs.api_quota_usage
        if old in usage:
            usage[new] = usage.pop(old)
            self._prefs.api_quota_usage = usage
        limits = self._prefs.api_quota_limits
        if old in limits:
            limits[new] = limits.pop(old)
            self._prefs.api_quota_limits = limits

    def reset_all(self) -> None:
        """Clear all per-key usage and zero the byte counter.  User-triggered."""
        self._prefs.api_quota_usage = {}
        self._prefs.total_data_bytes_used = 0
        logger.info("usage: tracking reset")
