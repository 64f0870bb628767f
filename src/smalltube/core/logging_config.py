"""Structured logging for SmallTube, built on structlog.

:func:`configure_logging` is called once per process by :func:`smalltube.cli.main`.
Library modules keep using the stdlib API::

    logger = logging.getLogger(__name__)
    logger.info("cache: saved %s", filename)

and records are rendered by structlog: one JSON object per line, or a
coloured console line when the level is ``DEBUG``.  Code that wants bound
context may use ``structlog.get_logger(__name__)`` instead.

Request URLs embed the API key as a ``key`` query parameter, so keys are
only ever logged through :func:`mask_key`.  The :func:`_redact_secrets`
processor is a second line: it blanks secret-named fields and strips
``key=`` values from every string it sees.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED: str = "[REDACTED]"

_MASK_PREFIX_LEN: int = 8

_SECRET_NAME_PARTS: tuple[str, ...] = (
    "api_key",
    "apikey",
    "authorization",
    "bearer",
    "credential",
    "encryption_key",
    "fernet",
    "password",
    "secret",
    "token",
)
"""A field whose lower-cased name contains any of these is redacted."""

_URL_KEY_PARAM = re.compile(r"([?&]key=)[^&\s\"']+")

# Third-party loggers that print full request URLs at INFO.
_URL_LOGGING_LIBRARIES: tuple[str, ...] = ("httpx", "httpcore")


def mask_key(api_key: str) -> str:
    """Return a log-safe form of an API key: its first 8 characters and ``...``."""
    return f"{api_key[:_MASK_PREFIX_LEN]}..."


# ---------------------------------------------------------------------------
# Redaction processor
# ---------------------------------------------------------------------------


def _is_secret_name(name: str) -> bool:
    lowered = name.lower()
    return any(part in lowered for part in _SECRET_NAME_PARTS)


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return _URL_KEY_PARAM.sub(rf"\1{REDACTED}", value)
    if isinstance(value, dict):
        return {
            name: REDACTED if _is_secret_name(name) else inner
            for name, inner in value.items()
        }
    return value


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Blank secret-named fields and strip API keys from logged URLs.

    Top-level fields are matched by name against :data:`_SECRET_NAME_PARTS`.
    Nested dicts are checked one level deep.  Every other string value,
    the ``event`` message included, has its ``key=`` query values replaced.
    """
    for name, value in list(event_dict.items()):
        event_dict[name] = REDACTED if _is_secret_name(name) else _scrub(value)
    return event_dict


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _pre_chain() -> list[Processor]:
    # %-style arguments are merged into the message before redaction.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _install_root_handler(renderer: Processor, pre_chain: list[Processor], level: int) -> None:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def configure_logging(log_level: str = "INFO") -> None:
    """Route stdlib and structlog records through one stderr handler.

    Every record carries ``timestamp`` (ISO 8601), ``level``, ``logger``
    and ``event``.  Safe to call repeatedly: the root handler is replaced,
    never duplicated.

    Args:
        log_level: ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"`` or
            ``"CRITICAL"``, case-insensitive.  Unknown names fall back to
            ``INFO``.  ``DEBUG`` switches to console rendering and leaves
            httpx logging enabled.
    """
    name = log_level.upper()
    debug = name == "DEBUG"
    pre_chain = _pre_chain()
    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if debug else structlog.processors.JSONRenderer()
    )

    _install_root_handler(renderer, pre_chain, getattr(logging, name, logging.INFO))

    if not debug:
        for library in _URL_LOGGING_LIBRARIES:
            logging.getLogger(library).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
