"""Logging configuration for the EIP bridge.

structlog renders either colored console lines (development) or JSON lines
(production). Request payloads bound to log events are rendered as text
and truncated, since MQTT bodies can be arbitrarily large.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

LOG_LEVEL_ENV = "EIP_BRIDGE_LOG_LEVEL"
LOG_FORMAT_ENV = "EIP_BRIDGE_LOG_FORMAT"

MAX_LOGGED_PAYLOAD = 256

# Third-party loggers that are chatty at INFO
_LIBRARY_LOGGERS = ("pycomm3", "aiomqtt", "mqtt")


def _render_payloads(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Turn bytes values into bounded text."""
    for key, value in event_dict.items():
        if isinstance(value, bytes | bytearray):
            text = bytes(value[:MAX_LOGGED_PAYLOAD]).decode("utf-8", errors="replace")
            if len(value) > MAX_LOGGED_PAYLOAD:
                text += f"... ({len(value)} bytes)"
            event_dict[key] = text
    return event_dict


def _renderer(log_format: str) -> list[Any]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def setup_logging(
    level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Configure structured logging for the bridge.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to the
            EIP_BRIDGE_LOG_LEVEL env var or INFO.
        log_format: Output format ('console' or 'json'). Defaults to the
            EIP_BRIDGE_LOG_FORMAT env var or 'console'.
    """
    level = level or os.environ.get(LOG_LEVEL_ENV, "INFO")
    log_format = (log_format or os.environ.get(LOG_FORMAT_ENV, "console")).lower()
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)

    # Library internals only show up when debugging the bridge itself
    library_level = log_level if log_level <= logging.DEBUG else max(log_level, logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            _render_payloads,
            structlog.processors.UnicodeDecoder(),
            *_renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class LogContext:
    """Bind key/value pairs to every log line emitted inside the block.

    Used per request so that device and publisher logs carry the request
    category and topic.
    """

    def __init__(self, **kwargs: Any) -> None:
        self._context = kwargs

    def __enter__(self) -> LogContext:
        structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self._context.keys())
