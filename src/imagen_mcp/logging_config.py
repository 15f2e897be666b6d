"""Structured logging configuration using structlog.

Log output never goes to stdout: the MCP server speaks JSON-RPC there and the
batch CLI prints its report there.
"""

import logging
import sys
from typing import TextIO

import structlog

from imagen_mcp.config import Settings

_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def configure_logging(
    log_level: str = "info", json_output: bool = False, stream: TextIO | None = None
) -> None:
    """Route stdlib and structlog records through one structlog formatter.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: If True, one JSON object per line. If False, console format.
        stream: Destination, stderr by default.
    """
    stream = stream or sys.stderr
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Request and SQL chatter only shows up when debugging
    noisy_level = logging.INFO if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def setup_logging(config: Settings) -> None:
    """Configure logging from settings (``debug`` forces DEBUG)."""
    configure_logging(config.effective_log_level, json_output=config.json_logs)


def bind_job_context(job_id: str, job_type: str | None = None) -> None:
    """Bind job identifiers to the current async context."""
    ctx = {"job_id": job_id}
    if job_type:
        ctx["job_type"] = job_type
    structlog.contextvars.bind_contextvars(**ctx)


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()
