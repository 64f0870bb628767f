"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Secrets (the Fernet key, the env-var API key fallback) are accessed
exclusively through this module; never call ``os.getenv`` directly
elsewhere in the codebase.

Usage::

    from smalltube.config.settings import get_settings

    settings = get_settings()
    ttl = settings.cache_timeout.seconds
"""

from __future__ import annotations

from enum import Enum, IntEnum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheTimeout(IntEnum):
    """User-selectable cache TTL choices, in seconds.

    ``DISABLED`` turns every cache store into a no-op store.
    """

    DISABLED = 0
    ONE_MINUTE = 60
    FIVE_MINUTES = 300
    TEN_MINUTES = 600
    THIRTY_MINUTES = 1800
    ONE_HOUR = 3600
    TWO_HOURS = 7200

    @property
    def seconds(self) -> float:
        return float(self.value)

    @property
    def title(self) -> str:
        if self is CacheTimeout.DISABLED:
            return "Disabled"
        if self.value < 3600:
            minutes = self.value // 60
            return f"{minutes} Minute" + ("s" if minutes > 1 else "")
        hours = self.value // 3600
        return f"{hours} Hour" + ("s" if hours > 1 else "")


class ThumbnailQuality(str, Enum):
    """Preferred thumbnail resolution when decoding video snippets."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables and an optional .env file.

    Every field has a default so the CLI starts without any configuration;
    at least one YouTube API key must be supplied (secret store or
    ``SMALLTUBE_YOUTUBE_API_KEYS``) before any request can succeed.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SMALLTUBE_",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage locations
    # ------------------------------------------------------------------

    data_dir: Path = Path.home() / ".smalltube"
    """Root directory for persisted state (preferences, secrets)."""

    cache_dir: Path | None = None
    """Directory holding cache payload and ``.meta`` files.

    Defaults to ``<data_dir>/cache`` when unset.
    """

    # ------------------------------------------------------------------
    # Cache policy
    # ------------------------------------------------------------------

    cache_timeout: CacheTimeout = CacheTimeout.FIVE_MINUTES
    """TTL applied to feed, trending and channel caches."""

    subscriptions_cache_ttl: int = 86400 * 30
    """TTL of the subscribed-channel metadata cache (30 days)."""

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    """Base URL for all YouTube Data API v3 endpoints."""

    request_timeout: float = 15.0
    """Per-request timeout in seconds (connect, read, write, pool)."""

    resource_timeout: float = 60.0
    """Total-transfer timeout in seconds for a single request."""

    # ------------------------------------------------------------------
    # Credentials and quota
    # ------------------------------------------------------------------

    youtube_api_keys: str = ""
    """Comma-delimited API key fallback used when the secret store is empty."""

    credential_encryption_key: str = ""
    """Fernet key encrypting the secret store file.

    Generate with::

        from cryptography.fernet import Fernet
        Fernet.generate_key().decode()

    When empty, API keys are kept in memory only and are not persisted.
    """

    default_quota_limit: int = 10_000
    """Daily quota ceiling applied to keys with no explicit limit."""

    quota_auto_reset: bool = True
    """Clear per-key usage when the upstream quota day rolls over."""

    quota_reset_timezone: str = "America/Los_Angeles"
    """Timezone whose midnight marks the upstream quota day boundary."""

    # ------------------------------------------------------------------
    # Feed behaviour
    # ------------------------------------------------------------------

    results_count: int = 10
    """Number of results requested per search / trending call."""

    home_feed_channel_count: int = 15
    """Number of subscribed channels sampled for the home feed."""

    country_code: str = "US"
    """ISO 3166-1 alpha-2 region code for the trending chart."""

    thumbnail_quality: ThumbnailQuality = ThumbnailQuality.HIGH
    """Preferred thumbnail resolution."""

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    @property
    def resolved_cache_dir(self) -> Path:
        return self.cache_dir if self.cache_dir is not None else self.data_dir / "cache"

    @property
    def state_file(self) -> Path:
        return self.data_dir / "preferences.json"

    @property
    def secrets_file(self) -> Path:
        return self.data_dir / "secrets.bin"


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    In tests, call ``get_settings.cache_clear()`` after patching environment
    variables.
    """
    return Settings()
