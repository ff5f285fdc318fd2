import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog


def configure_logging(level: str | None = None) -> None:
    """Configure structured logging for the application."""

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if os.getenv("JSON_LOGS", "false").lower() == "true":
        # Production: JSON logs
        renderer: Any = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        # Development: Pretty console logs
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (logging.getLogger(__name__)) through the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    # Add FileHandler if logs directory exists
    log_file = Path("logs/permitdex.log")
    if log_file.parent.exists():
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        handlers=handlers,
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        force=True,
    )


def bind_import_context(**values: Any) -> None:
    """Attach import-run fields (table, file) to every log line."""
    structlog.contextvars.bind_contextvars(**values)


def clear_import_context() -> None:
    structlog.contextvars.clear_contextvars()
