"""Map unrecovered failures to the six user-facing alert categories."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, ValidationError

from smalltube.core.exceptions import (
    ApiHTTPError,
    InvalidURLError,
    NoCredentialAvailableError,
    NoDataError,
    TransportError,
)

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    NO_RESULTS = "no_results"
    API_ERROR = "api_error"
    EMPTY_QUERY = "empty_query"
    QUOTA_EXCEEDED = "quota_exceeded"
    CREDS_MISMATCH = "creds_mismatch"
    UNKNOWN_ERROR = "unknown_error"

    @property
    def message(self) -> str:
        return _ALERT_MESSAGES[self]


_ALERT_MESSAGES: dict[AlertType, str] = {
    AlertType.NO_RESULTS: "No results found.",
    AlertType.API_ERROR: "There was a problem with the API. Check your API key and try again.",
    AlertType.EMPTY_QUERY: "Please enter a search query.",
    AlertType.QUOTA_EXCEEDED: "The API quota has been exceeded for all configured keys.",
    AlertType.CREDS_MISMATCH: "The API key does not match the configured project.",
    AlertType.UNKNOWN_ERROR: "An unknown error occurred.",
}


class _ErrorDetail(BaseModel):
    code: int
    message: str = ""


class ErrorResponse(BaseModel):
    """YouTube API error envelope: ``{"error": {"code": 403, "message": "..."}}``."""

    error: _ErrorDetail


def _alert_for_status(status_code: int) -> AlertType:
    if status_code == 403:
        return AlertType.QUOTA_EXCEEDED
    if status_code == 400:
        return AlertType.CREDS_MISMATCH
    return AlertType.API_ERROR


def map_error_to_alert(error: BaseException, body: bytes | None = None) -> AlertType:
    """Return the alert category for ``error``.

    An upstream error envelope in ``body`` (or in the error's own body)
    takes precedence over the exception type.

    Args:
        error: The unrecovered exception.
        body: Optional raw response body that accompanied the failure.
    """
    if body is None and isinstance(error, ApiHTTPError):
        body = error.body
    if body:
        try:
            envelope = ErrorResponse.model_validate_json(body)
        except ValidationError:
            envelope = None
        if envelope is not None:
            logger.error("alerts: API error %d: %s", envelope.error.code, envelope.error.message)
            return _alert_for_status(envelope.error.code)

    if isinstance(error, ApiHTTPError):
        logger.error("alerts: HTTP error %d", error.status_code)
        return _alert_for_status(error.status_code)

    if isinstance(error, (NoCredentialAvailableError, InvalidURLError, TransportError, NoDataError)):
        logger.error("alerts: API error: %s", error)
        return AlertType.API_ERROR

    logger.error("alerts: unknown error: %s", error)
    return AlertType.UNKNOWN_ERROR
