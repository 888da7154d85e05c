"""Structured logging configuration."""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from core.config import Settings

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = (
    "apscheduler",
    "apscheduler.scheduler",
    "apscheduler.executors",
    "aiosqlite",
    "sqlalchemy.engine",
    "sqlalchemy.dialects",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging based on settings."""
    level = getattr(logging, settings.log_level)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
    logging.basicConfig(level=level, handlers=handlers, format="%(message)s")

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Add appropriate renderer based on format
    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    logger.info("Operation completed", operation=operation,
                execution_time_seconds=round(end_time - start_time, 4), **kwargs)


def log_api_call(logger: structlog.BoundLogger, provider: str, model: str,
                 operation: str, success: bool, **kwargs) -> None:
    """One line per generation service call; failures log at warning."""
    log = logger.info if success else logger.warning
    log("Generation call completed", provider=provider, model=model,
        operation=operation, success=success, **kwargs)


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        record_id: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Debug-level trace of working cache reads and writes."""
    if hit is not None:
        kwargs["cache_hit"] = hit
    logger.debug("Working cache operation", operation=operation, record_id=record_id, **kwargs)
