"""Logging configuration for kubeutil.

Log events go to stderr (or a file), never to stdout: tokens, manifests and
``exec`` output are written to stdout and must stay machine-parseable.
Library functions take an optional logger; ``None`` means no logging at all.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog


def _processors(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure standard logging and structlog for the CLI.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Append log lines to this file instead of stderr
        json_output: Render one JSON object per event (``--json``)

    Usage:
        Interactive: configure_logging("info")
        CI jobs: configure_logging("debug", log_file="kubeutil.log", json_output=True)
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(str(log_file))
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)


# Discards every event without rendering it.
NULL_LOGGER: Any = structlog.wrap_logger(
    structlog.ReturnLogger(),
    processors=[],
    wrapper_class=structlog.BoundLogger,
)


def ensure_logger(logger: Any | None) -> Any:
    """Return logger, or a no-op logger when none was given."""
    if logger is None:
        return NULL_LOGGER
    return logger
