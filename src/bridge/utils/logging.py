"""
Structured logging configuration for the bridge.

Provides JSON-formatted logging with automatic request ID injection.
"""

import json
import logging
import sys
from typing import Any

from bridge.config import Settings
from bridge.utils.request_context import get_request_id

# Attributes present on every LogRecord; anything else was passed via extra=
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as one JSON line.

        The request_id set by the request tracking middleware is injected
        automatically, so call sites only pass domain fields via ``extra``
        (model, exit_code, elapsed_seconds, usage, ...).

        Args:
            record: The log record to format

        Returns:
            JSON-formatted string with all fields serialized
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        request_id = get_request_id()
        if request_id:
            log_data["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the application.

    Sets up console logging with appropriate format based on configuration.
    Supports both JSON and standard formats.

    Args:
        settings: Application settings containing logging configuration
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.log_level.upper()))

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, settings.log_level.upper()))

    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "log_format": settings.log_format,
            "environment": settings.environment,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
