"""Key-rotating HTTP client for the YouTube Data API.

Every request embeds an API key in its URL.  Callers pass a *URL builder*,
a function from key to URL, and :meth:`KeyRotatingClient.fetch_with_rotation`
walks the pool starting at the persisted current index:

- keys whose usage has reached their ceiling are skipped;
- a builder result that is not a usable http(s) URL skips that key;
- a 2xx response persists the winning index, charges the estimated quota
  cost to the key, adds the body size to the byte counter and returns
  the body;
- HTTP 403 (quota exceeded) marks the key exhausted and moves on;
- any other HTTP status or transport failure is raised at once.  A
  non-quota failure is not fixed by switching credentials, and rotating
  on it would silently burn through every key.

At most one pass over the pool is made per call.

Concurrency: independent fetches may run as parallel tasks.  The shared
index and counters are updated without locks; lost updates are tolerated.
Cancelling the awaiting task aborts the in-flight request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx

from smalltube.core.api_keys import ApiKeyPool
from smalltube.core.exceptions import (
    ApiHTTPError,
    InvalidURLError,
    NoCredentialAvailableError,
    NoDataError,
    QuotaExceededError,
    TransportError,
    error_for_status,
)
from smalltube.core.logging_config import mask_key
from smalltube.core.usage import UsageTracker, estimate_quota_cost

logger = logging.getLogger(__name__)

UrlBuilder = Callable[[str], str | httpx.URL | None]
"""Builds the request URL for one API key; ``None`` means "cannot build"."""

DEFAULT_REQUEST_TIMEOUT: float = 15.0
DEFAULT_RESOURCE_TIMEOUT: float = 60.0


def _usable_url(candidate: str | httpx.URL | None) -> httpx.URL | None:
    """Return ``candidate`` as an absolute http(s) URL, or ``None``."""
    if candidate is None:
        return None
    try:
        url = httpx.URL(str(candidate)) if not isinstance(candidate, httpx.URL) else candidate
    except httpx.InvalidURL:
        return None
    if url.scheme not in ("http", "https") or not url.host:
        return None
    return url


class KeyRotatingClient:
    """Async GET client rotating through an :class:`ApiKeyPool`.

    Args:
        pool: Ordered API keys and the persisted current index.
        usage: Usage tracker consulted for eligibility and charged on success.
        http_client: Optional injected :class:`httpx.AsyncClient`.  When
            omitted the client creates and owns one.
        request_timeout: Per-request timeout in seconds.
        resource_timeout: Total-transfer timeout in seconds.
    """

    def __init__(
        self,
        pool: ApiKeyPool,
        usage: UsageTracker,
        *,
        http_client: httpx.AsyncClient | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT,
    ) -> None:
        self.pool = pool
        self.usage = usage
        self._resource_timeout = resource_timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> KeyRotatingClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    # ------------------------------------------------------------------
    # Single request
    # ------------------------------------------------------------------

    async def fetch(self, url: httpx.URL) -> bytes:
        """GET ``url`` and return the body of a 2xx response.

        Raises:
            ApiHTTPError: Non-2xx status (``QuotaExceededError`` for 403,
                ``CredentialMismatchError`` for 400).
            TransportError: Any httpx request failure, timeouts included.
        """
        try:
            response = await asyncio.wait_for(
                self._http_client.get(url),
                timeout=self._resource_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise TransportError(f"Request to {url.path} timed out") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"Request error on {url.path}: {type(exc).__name__}") from exc

        if not response.is_success:
            logger.info("fetch: HTTP %d on %s", response.status_code, url.path)
            raise error_for_status(response.status_code, body=response.content)
        return response.content

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    async def fetch_with_rotation(self, url_builder: UrlBuilder) -> bytes:
        """Fetch a resource, rotating keys on quota exhaustion.

        Args:
            url_builder: Maps an API key to the request URL.

        Returns:
            Raw response body of the first successful request.

        Raises:
            NoCredentialAvailableError: The pool is empty.
            QuotaExceededError: Every key was exhausted, either before the
                call or by 403 responses during it.
            InvalidURLError: The builder produced no usable URL for any
                eligible key.
            ApiHTTPError: A non-403 HTTP error (raised without rotating).
            TransportError: A timeout or connectivity failure (raised
                without rotating).
        """
        keys = self.pool.keys
        if not keys:
            raise NoCredentialAvailableError()

        start = self.pool.current_index
        last_error: ApiHTTPError | None = None
        skipped_exhausted = 0
        rejected_url = False

        for offset in range(len(keys)):
            index = (start + offset) % len(keys)
            key = keys[index]

            if not self.usage.is_eligible(key):
                skipped_exhausted += 1
                continue

            url = _usable_url(url_builder(key))
            if url is None:
                rejected_url = True
                continue

            try:
                body = await self.fetch(url)
            except QuotaExceededError as exc:
                logger.warning("fetch: API key quota exceeded: %s Rotating.", mask_key(key))
                self.usage.mark_exhausted(key)
                last_error = exc
                continue

            if index != start:
                self.pool.current_index = index
            self.usage.increment_usage(key, estimate_quota_cost(url))
            self.usage.add_bytes(len(body))
            return body

        if last_error is not None:
            raise last_error
        if skipped_exhausted:
            raise QuotaExceededError("All API keys have exhausted their quota")
        if rejected_url:
            raise InvalidURLError("URL builder produced no usable URL")
        raise NoDataError()

    # ------------------------------------------------------------------
    # Key validation
    # ------------------------------------------------------------------

    async def validate_keys(self, url_builder: UrlBuilder) -> dict[str, bool]:
        """Check every pooled key with one request each, concurrently.

        A key is valid when its response body is a JSON object without an
        ``error`` envelope.  Transport failures, unusable URLs and
        undecodable bodies count as invalid.  Neither the current index
        nor the usage counters are touched.

        Returns:
            Mapping of key to validity, in pool order.
        """
        keys = self.pool.keys
        results = await asyncio.gather(*(self._check_key(key, url_builder) for key in keys))
        return dict(zip(keys, results))

    async def _check_key(self, key: str, url_builder: UrlBuilder) -> bool:
        url = _usable_url(url_builder(key))
        if url is None:
            return False
        try:
            response = await asyncio.wait_for(
                self._http_client.get(url),
                timeout=self._resource_timeout,
            )
        except (asyncio.TimeoutError, httpx.RequestError) as exc:
            logger.info("validate: key %s unreachable: %s", mask_key(key), type(exc).__name__)
            return False
        try:
            payload = response.json()
        except ValueError:
            logger.info("validate: key %s returned a non-JSON body", mask_key(key))
            return False
        return isinstance(payload, dict) and "error" not in payload
