"""Data models for the orchestration engine."""

from .security import APIKeyRecord, AuditLogEntry, EncryptedPayload
from .swarm import SwarmConfig, SwarmRecord, SwarmStrategy, SwarmTopology
from .tool import RateLimitConfig, ResponseMetadata, ServerConfig, ToolCall, ToolResponse
from .workflow import (
    TERMINAL_STATUSES,
    ErrorPolicy,
    ExecutionStatus,
    StepType,
    WorkflowConfig,
    WorkflowExecution,
    WorkflowStep,
)

__all__ = [
    # Tools
    "ServerConfig",
    "RateLimitConfig",
    "ToolCall",
    "ToolResponse",
    "ResponseMetadata",
    # Workflows
    "WorkflowConfig",
    "WorkflowStep",
    "WorkflowExecution",
    "ExecutionStatus",
    "ErrorPolicy",
    "StepType",
    "TERMINAL_STATUSES",
    # Swarms
    "SwarmConfig",
    "SwarmRecord",
    "SwarmStrategy",
    "SwarmTopology",
    # Security
    "APIKeyRecord",
    "AuditLogEntry",
    "EncryptedPayload",
]
