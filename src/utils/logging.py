"""Structured logging configuration using structlog."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional, Union

import structlog

_FILE_HANDLER_NAME = "org_archiver_file"


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    correlation_id: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> structlog.BoundLogger:
    """Configure structured logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARN, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
        correlation_id: Optional correlation ID for this run
        log_file: Optional path of a log file to append to, in addition to stdout

    Returns:
        Configured logger instance
    """
    # Convert string level to logging constant
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    root = logging.getLogger()
    root.setLevel(level)

    if log_file is not None:
        _attach_file_handler(root, Path(log_file))

    # Configure structlog processors
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,  # Add context variables
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        # No colors: the same rendered line also goes to the log file
        processors.append(structlog.dev.ConsoleRenderer(colors=log_file is None))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Get logger and add correlation ID if provided
    logger = structlog.get_logger()
    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)

    return logger


def _attach_file_handler(root: logging.Logger, log_file: Path) -> None:
    """Attach an append-mode file handler to the root logger (once per path)."""
    for handler in list(root.handlers):
        if handler.get_name() == _FILE_HANDLER_NAME:
            if Path(getattr(handler, "baseFilename", "")) == log_file.resolve():
                return
            root.removeHandler(handler)
            handler.close()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.set_name(_FILE_HANDLER_NAME)
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(file_handler)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name

    Returns:
        Logger instance
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
