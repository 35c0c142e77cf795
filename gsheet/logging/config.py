"""Logging configuration for gsheet consumers and the CLI."""

from __future__ import annotations

import logging
import sys
from typing import IO, Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging"]


def _ensure_stream_handler(
    logger: logging.Logger, formatter: logging.Formatter, stream: IO[str]
) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    stream_handler_found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            stream_handler_found = True
    if not stream_handler_found:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logging(
    *,
    static_fields: Mapping[str, str] | None = None,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure JSON logging on the root logger.

    Parameters
    ----------
    static_fields:
        Fields included with every structured log event.
    level:
        Root logger level.
    stream:
        Destination stream for new handlers (defaults to ``sys.stderr``).

    Returns
    -------
    logging.Logger
        The ``gsheet`` package logger.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _ensure_stream_handler(
        root_logger, JsonFormatter(static=dict(static_fields or {})), stream or sys.stderr
    )
    return logging.getLogger("gsheet")
