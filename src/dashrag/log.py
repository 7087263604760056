"""Structured logging on top of stdlib logging + rich.

Usage:
    from dashrag.log import get_logger, log_event

    logger = get_logger(__name__)
    log_event(logger, "info", "chunks_written", source="report.csv", count=3)

Each call renders as ``chunks_written source=report.csv count=3`` and the raw
fields travel on the record as ``record.fields`` for handlers that want them.
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

_ROOT = "dashrag"

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level: str = "warning", console: Console | None = None) -> None:
    """Attach a RichHandler to the ``dashrag`` logger (idempotent).

    Args:
        level: Level name (debug, info, warning, error, critical).
        console: Console to render to; defaults to stderr.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(_parse_level(level))

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    # litellm and httpx are chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def is_configured() -> bool:
    """True once setup_logging() has attached its handler."""
    return any(isinstance(h, RichHandler) for h in logging.getLogger(_ROOT).handlers)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_event(logger: logging.Logger, level: str, event: str, **fields: Any) -> None:
    """Emit *event* with structured *fields* at *level*."""
    levelno = _parse_level(level)
    if not logger.isEnabledFor(levelno):
        return
    logger.log(levelno, format_event(event, fields), extra={"fields": dict(fields), "event": event})


def format_event(event: str, fields: dict[str, Any]) -> str:
    """Render ``event k=v k=v``; values containing spaces are quoted."""
    parts = [event]
    for key, value in fields.items():
        text = str(value)
        if not text or any(c.isspace() for c in text):
            text = repr(text)
        parts.append(f"{key}={text}")
    return " ".join(parts)


def _parse_level(level: str) -> int:
    try:
        return LOG_LEVELS[level.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown log level '{level}'. Use one of: {', '.join(LOG_LEVELS)}"
        ) from None
