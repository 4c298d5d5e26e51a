"""Structured logging for the CLI: structlog rendered through stdlib logging.

Environment:
    NUGSENTINEL_LOG_LEVEL   DEBUG | INFO | WARNING | ... (default: INFO)
    NUGSENTINEL_LOG_FORMAT  console | json (default: console)

Log records always go to stderr; stdout carries command output only.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

# Held at WARNING or above.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    name = os.environ.get("NUGSENTINEL_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog once per process.

    ``verbose`` forces DEBUG regardless of ``NUGSENTINEL_LOG_LEVEL``.
    """
    level = _level(verbose)
    fmt = os.environ.get("NUGSENTINEL_LOG_FORMAT", "console").strip().lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(fmt),
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("nugsentinel").setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
