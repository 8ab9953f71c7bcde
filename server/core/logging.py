"""Structured logging for the gateway.

Events go to stderr; stdout belongs to the protocol transport. Every event
emitted while a dispatch is in flight carries the operation name bound by
``dispatch_context``.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import structlog

from core.config import Settings

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def _handlers(settings: Settings, level: int) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    handlers: List[logging.Handler] = [console]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        handlers.append(file_handler)
    return handlers


def configure_logging(settings: Settings) -> None:
    """Configure stdlib logging and the structlog processor chain."""
    level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=level,
        handlers=_handlers(settings, level),
        format="%(message)s",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
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


@contextmanager
def dispatch_context(operation: str, **kwargs) -> Iterator[None]:
    """Bind the operation (and extra fields) to every event inside the block."""
    with structlog.contextvars.bound_contextvars(dispatch_operation=operation, **kwargs):
        yield


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    """Log execution time with additional context."""
    logger.info(
        "Operation completed",
        operation=operation,
        execution_time_seconds=round(end_time - start_time, 4),
        **kwargs
    )


def log_retry_attempt(logger: structlog.BoundLogger, operation: str, attempt: int,
                      max_attempts: int, delay: float, error: BaseException) -> None:
    """Log a failed attempt that will be retried after ``delay`` seconds."""
    logger.info(
        "Retrying after failure",
        operation=operation,
        attempt=attempt,
        max_attempts=max_attempts,
        delay=delay,
        error_type=type(error).__name__,
        error=str(error)[:200],
    )


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Log cache operations."""
    log_data = {
        "operation": operation,
        "cache_key": key,
        **kwargs
    }

    if hit is not None:
        log_data["cache_hit"] = hit

    logger.debug("Cache operation", **log_data)
