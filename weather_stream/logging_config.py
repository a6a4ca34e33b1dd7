"""
Logging configuration for structured JSON logging.
"""
import json
import logging
import sys
from typing import Optional, TextIO

STRUCTURED_FIELDS = ("location_id", "task", "attempt", "duration_ms", "status")


class StructuredJSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # Base log entry
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add structured fields if present
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add exception info if present
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(log_level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """Setup structured logging configuration."""
    formatter = StructuredJSONFormatter(datefmt="%Y-%m-%dT%H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stdout is reserved for readings printed by the CLI
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger_with_context(
    name: str, location_id: str = None, task: str = None
) -> logging.Logger:
    """Get logger with contextual information."""
    logger = logging.getLogger(name)

    if location_id or task:
        extra_context = {}
        if location_id:
            extra_context["location_id"] = location_id
        if task:
            extra_context["task"] = task

        return logging.LoggerAdapter(logger, extra_context)

    return logger


def log_fetch(
    logger: logging.Logger,
    location_id: str,
    task: str,
    duration_ms: int,
    status: str,
    message: str = "",
) -> None:
    """Log a finished fetch with structured fields."""
    logger.info(
        message,
        extra={
            "location_id": location_id,
            "task": task,
            "duration_ms": duration_ms,
            "status": status,
        },
    )
