"""Logging configuration for the orchestration engine.

This module provides structured logging with JSON output support. Records may
carry an ``orchestration`` context (server, workflow, execution ids) which the
structured formatter folds into the emitted entry.
"""

import json
import logging
import sys
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogEntry(BaseModel):
    """Structured log entry.

    Attributes:
        timestamp: Log timestamp
        level: Log level
        message: Log message
        logger: Logger name
        context: Source location plus any orchestration context
    """

    timestamp: str
    level: str
    message: str
    logger: str
    context: dict[str, Any] = Field(default_factory=dict)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured log output.

    Outputs one JSON object per record, or a compact text line.
    """

    def __init__(self, format_type: str = "json") -> None:
        """Initialize the structured formatter.

        Args:
            format_type: Output format ("json" or "text")
        """
        super().__init__()
        self.format_type = format_type

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record.

        Args:
            record: Log record to format

        Returns:
            Formatted log string
        """
        context: dict[str, Any] = {
            "function": record.funcName,
            "line": record.lineno,
            "module": record.module,
        }
        context.update(getattr(record, "orchestration", None) or {})

        if record.exc_info:
            context["exception"] = self.formatException(record.exc_info)

        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            message=record.getMessage(),
            logger=record.name,
            context=context,
        )

        if self.format_type == "json":
            return json.dumps(entry.model_dump(), default=str)
        return f"{entry.timestamp} [{entry.level}] {entry.logger}: {entry.message}"


class ColoredFormatter(logging.Formatter):
    """Colored console formatter using ANSI escape codes."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.COLORS.get(record.levelname, "")
        reset_color = self.COLORS["RESET"]
        line = f"[{level_color}{record.levelname}{reset_color}] {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str | LogLevel = "INFO",
    format_type: str = "text",
    use_colors: bool = True,
    log_file: str | None = None,
) -> None:
    """Set up logging for the orchestrator process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("json", "text")
        use_colors: Whether to use colors in console output
        log_file: Optional file to write logs to
    """
    root_logger = logging.getLogger()
    level_name = level.value if isinstance(level, LogLevel) else level.upper()
    root_logger.setLevel(getattr(logging, level_name))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if use_colors and format_type == "text":
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(StructuredFormatter(format_type=format_type))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(format_type="json"))
        root_logger.addHandler(file_handler)

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(max(root_logger.level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

