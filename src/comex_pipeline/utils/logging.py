"""
utils/logging.py — structlog configuration for the pipeline.

Sets up structured logging with JSON or human-readable console output
controlled by settings.log_format. Call configure_logging() once at
process startup (done automatically by the CLI).

Usage:
    from comex_pipeline.utils.logging import configure_logging, get_logger

    configure_logging(log_level="DEBUG", log_format="json")
    log = get_logger(__name__, ncm_code="84713012")
    log.info("ncm_analysis_start", nfe_file="dados_nfe_2016_2023.xlsx")
    log.warning("domestic_sales_clamped", rows=1, years=["2021"])

Event names are snake_case verbs of what happened
(comexstat_general_query, trade_series_built, country_breakdown_failed);
values go in keyword fields, never in the event string.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog

from comex_shared.config import settings

# httpx logs every request at INFO; only shown when the pipeline runs at DEBUG
_HTTP_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog for the pipeline process.

    Should be called once at startup. Idempotent.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = log_level or settings.log_level
    fmt = log_format or settings.log_format

    # Standard library logging integration
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    http_level = logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # Routed through stdlib logging on stderr so `comex analyze --json` keeps stdout clean
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Return a bound structlog logger with optional initial context values.

    Args:
        name:           Logger name (conventionally the module __name__).
        **initial_values: Key-value pairs merged into every log record.

    Returns:
        structlog.BoundLogger
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]


def analysis_context(ncm_code: str) -> AbstractContextManager[Any]:
    """Bind ncm_code to every log record emitted inside the block, in any module."""
    return structlog.contextvars.bound_contextvars(ncm_code=ncm_code)
