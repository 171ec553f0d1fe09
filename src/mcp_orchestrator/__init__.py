"""MCP Orchestrator.

A tool-call orchestration engine: a uniform client for invoking tools on
heterogeneous servers, a DAG workflow engine with bounded concurrency, an
agent-swarm coordination façade and a security layer every call passes
through.
"""

__version__ = "0.1.0"

from .config import OrchestratorSettings, SecurityConfig, load_settings
from .exceptions import OrchestratorError
from .execution import Orchestrator, SwarmManager, TaskQueue, WorkflowEngine
from .models import (
    ExecutionStatus,
    ServerConfig,
    SwarmConfig,
    ToolCall,
    ToolResponse,
    WorkflowConfig,
    WorkflowExecution,
    WorkflowStep,
)
from .security import SecurityManager
from .tools import CallableToolBackend, HTTPToolBackend, SlidingWindowRateLimiter, ToolClient

__all__ = [
    # Version
    "__version__",
    # Core entities
    "ServerConfig",
    "ToolCall",
    "ToolResponse",
    "WorkflowConfig",
    "WorkflowStep",
    "WorkflowExecution",
    "ExecutionStatus",
    "SwarmConfig",
    # Configuration
    "OrchestratorSettings",
    "SecurityConfig",
    "load_settings",
    # Components
    "ToolClient",
    "CallableToolBackend",
    "HTTPToolBackend",
    "SlidingWindowRateLimiter",
    "SecurityManager",
    "TaskQueue",
    "WorkflowEngine",
    "SwarmManager",
    "Orchestrator",
    # Errors
    "OrchestratorError",
]
