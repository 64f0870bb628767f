"""Application-wide exception hierarchy for SmallTube.

All custom exceptions subclass ``SmallTubeError``, enabling consistent
error handling and alert mapping across the application.

Hierarchy::

    SmallTubeError
    ├── NoCredentialAvailableError
    ├── InvalidURLError
    ├── ApiHTTPError             (status_code: int)
    │   ├── QuotaExceededError   (403)
    │   └── CredentialMismatchError (400)
    ├── TransportError
    ├── NoDataError
    └── ResponseDecodeError
"""

from __future__ import annotations


class SmallTubeError(Exception):
    """Base class for all SmallTube exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Credential exceptions
# ---------------------------------------------------------------------------


class NoCredentialAvailableError(SmallTubeError):
    """Raised when the API key pool is empty.

    Surfaced to the end user as "missing API key".  No request is attempted.
    """

    def __init__(self, message: str = "No API key configured") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Request exceptions
# ---------------------------------------------------------------------------


class InvalidURLError(SmallTubeError):
    """Raised when a URL builder yields no usable URL for any key.

    This indicates a bug in request construction, not a credential problem.

    Args:
        message: Human-readable description of the failure.
        url: The rejected URL, if one was produced.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ApiHTTPError(SmallTubeError):
    """Raised when the upstream API answers with a non-2xx status.

    Args:
        status_code: HTTP status code returned by the API.
        message: Optional human-readable description.  Defaults to
            ``"HTTP <status_code>"``.
        body: Raw response body, kept for error-body inspection.
    """

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        body: bytes | None = None,
    ) -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class QuotaExceededError(ApiHTTPError):
    """Raised on HTTP 403, which the YouTube Data API uses for quota exhaustion.

    Also raised without a network call when every key in the pool is
    already marked exhausted.
    """

    def __init__(self, message: str | None = None, body: bytes | None = None) -> None:
        super().__init__(403, message or "API quota exceeded", body=body)


class CredentialMismatchError(ApiHTTPError):
    """Raised on HTTP 400, signalling a key/project inconsistency."""

    def __init__(self, message: str | None = None, body: bytes | None = None) -> None:
        super().__init__(400, message or "API credentials mismatch", body=body)


class TransportError(SmallTubeError):
    """Raised on timeouts and connectivity failures.

    Request timeouts and total-transfer timeouts are not distinguished from
    connection loss.
    """


class NoDataError(SmallTubeError):
    """Raised when a fetch ends without a response and without a recorded error."""

    def __init__(self, message: str = "No data received") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Data-processing exceptions
# ---------------------------------------------------------------------------


class ResponseDecodeError(SmallTubeError):
    """Raised when a 2xx response body does not match the expected shape.

    Args:
        message: Description of the decoding failure.
        endpoint: API endpoint whose response could not be decoded.
    """

    def __init__(self, message: str, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


def error_for_status(status_code: int, body: bytes | None = None) -> ApiHTTPError:
    """Return the most specific :class:`ApiHTTPError` for ``status_code``."""
    if status_code == 403:
        return QuotaExceededError(body=body)
    if status_code == 400:
        return CredentialMismatchError(body=body)
    return ApiHTTPError(status_code, body=body)
