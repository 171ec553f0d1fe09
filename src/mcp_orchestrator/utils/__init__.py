"""Utility modules for the orchestration engine."""

from .id import generate_execution_id, generate_request_id, generate_swarm_id, generate_uuid
from .logging import ColoredFormatter, LogEntry, LogLevel, StructuredFormatter, get_logger, setup_logging
from .retry import DEFAULT_RETRY_DELAYS, delay_for_attempt, exponential_schedule

__all__ = [
    # ID generation
    "generate_uuid",
    "generate_execution_id",
    "generate_swarm_id",
    "generate_request_id",
    # Retry
    "DEFAULT_RETRY_DELAYS",
    "delay_for_attempt",
    "exponential_schedule",
    # Logging
    "setup_logging",
    "get_logger",
    "LogLevel",
    "LogEntry",
    "StructuredFormatter",
    "ColoredFormatter",
]
