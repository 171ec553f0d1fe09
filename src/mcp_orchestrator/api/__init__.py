"""HTTP API for the orchestration engine."""

from .app import API_PREFIX, ORCHESTRATOR_KEY, create_app
from .responses import batch_summary, error, paginated, success

__all__ = [
    "create_app",
    "API_PREFIX",
    "ORCHESTRATOR_KEY",
    "success",
    "error",
    "paginated",
    "batch_summary",
]
