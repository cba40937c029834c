"""
Structlog-based logging configuration for the guard.

All modules get their logger through `get_logger(__name__)` and log with
keyword context, e.g.:

    logger = get_logger(__name__)
    logger.warning("Denied connection", player_id=..., address=..., reason=...)

`configure_logging()` is called once by the CLI. Library users (a host
embedding the gatekeeper) may skip it and configure structlog themselves.
"""

import logging
import sys
from typing import Any, List, Optional, TextIO

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory

LOG_FORMATS = ("console", "json")


def configure_logging(level: str = "INFO", fmt: str = "console", stream: Optional[TextIO] = None) -> None:
    """
    Route structlog through stdlib logging to `stream` (stderr by default).

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        fmt: "console" for human-readable lines, "json" for one JSON object per line.
        stream: Where log lines go.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {fmt!r}; expected one of {LOG_FORMATS}")

    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level {level!r}")

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if fmt == "json":
        # ConsoleRenderer formats tracebacks itself; JSON needs them as text.
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> BoundLogger:
    """Structlog logger named after the calling module."""
    return structlog.get_logger(name)
