"""
Structured logging for appchart.

Modules obtain loggers with :func:`get_logger`. The host process (the
reconciliation driver or the ``appchart`` CLI) calls
:func:`configure_logging` once at startup; before that, structlog's own
defaults are in effect.

Every record carries ``service.name`` and whatever context is bound with
:class:`LogContext` (the compiler binds ``app`` and ``environment`` for the
duration of a compile).

Architecture:
    ::

        get_logger(__name__).info("chart_compiled", deployments=2)
            │
            ▼
        [timestamp] → contextvars → level/logger name → service.name
            │
            ▼
        JSON line (non-TTY)  |  coloured console line (TTY)
            │
            ▼
        stdlib handler on ``stream`` (stderr for the CLI)

Tags:
    logging, structlog, appchart
"""

from __future__ import annotations

import logging
import sys
from contextvars import Token
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

DEFAULT_SERVICE = "appchart"


class ServiceNameStamper:
    """Processor stamping ``service.name`` onto records that lack one."""

    def __init__(self, service: str = DEFAULT_SERVICE) -> None:
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def _build_chain(service: str, *, json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = []
    if add_timestamp:
        chain.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    chain += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        ServiceNameStamper(service),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        chain += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = DEFAULT_SERVICE,
    add_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Install the appchart processor chain and a stdlib handler.

    Args:
        level: Minimum level name, e.g. ``"DEBUG"`` or ``"WARNING"``
        json_format: Force JSON (True) or console (False) rendering; None
            picks JSON whenever the output stream is not a terminal
        service: Value written to ``service.name``
        add_timestamp: Prefix records with a UTC ISO-8601 timestamp
        stream: Destination stream, stdout when omitted
    """
    out = stream or sys.stdout
    if json_format is None:
        json_format = not (hasattr(out, "isatty") and out.isatty())

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    structlog.configure(
        processors=_build_chain(service, json_format=json_format, add_timestamp=add_timestamp),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=out, level=numeric_level, force=True)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**values: Any) -> None:
    """Attach ``values`` to every record logged from the current context."""
    structlog.contextvars.bind_contextvars(**values)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Bind log context for the length of a ``with`` block.

    Values that were already bound under the same keys are restored on exit.

    Example:
        with LogContext(app="shop", environment="production"):
            logger.info("compiling")
    """

    def __init__(self, **values: Any) -> None:
        self.values = values
        self._tokens: dict[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self.values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}


__all__ = [
    "DEFAULT_SERVICE",
    "LogContext",
    "ServiceNameStamper",
    "bind_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
]
