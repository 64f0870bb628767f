"""Filesystem-backed TTL cache for arbitrary serializable values.

Each cache slot is a pair of files in the cache directory:

- ``<filename>``       — the payload, JSON-encoded.
- ``<filename>.meta``  — the write time, an 8-byte big-endian IEEE-754
  double holding a Unix timestamp.

Both files are written atomically, payload first.  The pair is not
transactional: a crash between the two writes leaves a fresh payload with a
stale or missing timestamp, which reads as expired (a false negative, never
a false positive).

TTL only gates freshness; nothing is ever deleted because it is stale.
Callers decide what counts as a hit:

Usage::

    cache = CacheStore(list[Video], "trending.json", ttl=300, cache_dir=path)
    cache.save(videos)
    cached = cache.load()
    if cached and not cache.is_expired:
        return cached

Caching is best-effort.  Every read, write or decode failure is logged and
treated as a miss or a no-op; nothing propagates to the caller.
"""

from __future__ import annotations

import logging
import math
import struct
import time
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from smalltube.core.state import write_atomic

logger = logging.getLogger(__name__)

T = TypeVar("T")

META_SUFFIX: str = ".meta"
_META_FORMAT: str = ">d"
_META_SIZE: int = struct.calcsize(_META_FORMAT)


def encode_timestamp(timestamp: float) -> bytes:
    """Pack a Unix timestamp as an 8-byte big-endian double."""
    return struct.pack(_META_FORMAT, timestamp)


def decode_timestamp(data: bytes) -> float | None:
    """Unpack a metadata timestamp, or ``None`` if it is malformed."""
    if len(data) != _META_SIZE:
        return None
    (timestamp,) = struct.unpack(_META_FORMAT, data)
    if not math.isfinite(timestamp):
        return None
    return timestamp


class CacheStore(Generic[T]):
    """One named cache slot holding a value of type ``T``.

    Args:
        value_type: Type used to validate and rebuild the payload on
            ``load()`` (e.g. ``list[Video]``).  Any type pydantic's
            :class:`~pydantic.TypeAdapter` accepts.
        filename: Slot identity, unique per cacheable resource
            (e.g. ``"channel_<id>.json"``).
        ttl: Time-to-live in seconds.  ``ttl <= 0`` disables the slot:
            ``save()`` is a no-op and ``is_expired`` is always ``True``.
        cache_dir: Directory holding the payload and metadata files.
        clock: Returns the current Unix time.  Injected for tests.
    """

    def __init__(
        self,
        value_type: Any,
        filename: str,
        ttl: float,
        cache_dir: Path,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not filename or Path(filename).name != filename:
            raise ValueError(f"Cache filename must be a bare file name, got {filename!r}")
        self.filename = filename
        self.ttl = ttl
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)
        self._clock = clock
        self.file_path = cache_dir / filename
        self.meta_path = cache_dir / f"{filename}{META_SUFFIX}"

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, value: T) -> None:
        if self.ttl <= 0:
            return
        try:
            payload = self._adapter.dump_json(value)
            write_atomic(self.file_path, payload)
            write_atomic(self.meta_path, encode_timestamp(self._clock()))
        except (OSError, ValueError, TypeError) as exc:
            logger.error("cache: save failed [%s]: %s", self.filename, exc)
            return
        logger.debug("cache: saved %s", self.filename)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self) -> T | None:
        """Return the stored value, ignoring TTL.  ``None`` if absent or undecodable."""
        try:
            data = self.file_path.read_bytes()
        except FileNotFoundError:
            logger.debug("cache: miss (no file) %s", self.filename)
            return None
        except OSError as exc:
            logger.error("cache: read failed [%s]: %s", self.filename, exc)
            return None
        try:
            value = self._adapter.validate_json(data)
        except ValidationError as exc:
            logger.error(
                "cache: decode failed [%s]: %d validation error(s)",
                self.filename,
                exc.error_count(),
            )
            return None
        logger.debug("cache: hit %s", self.filename)
        return value

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    @property
    def written_at(self) -> float | None:
        """Timestamp of the last successful save, or ``None`` if unknown."""
        try:
            return decode_timestamp(self.meta_path.read_bytes())
        except OSError:
            return None

    @property
    def is_expired(self) -> bool:
        if self.ttl <= 0:
            return True
        written_at = self.written_at
        if written_at is None:
            logger.debug("cache: expired (no meta) %s", self.filename)
            return True
        expired = self._clock() - written_at > self.ttl
        logger.debug("cache: %s expired=%s", self.filename, expired)
        return expired

    # ------------------------------------------------------------------
    # Invalidate
    # ------------------------------------------------------------------

    def invalidate(self) -> None:
        for path in (self.file_path, self.meta_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("cache: could not remove %s: %s", path, exc)
        logger.debug("cache: invalidated %s", self.filename)
