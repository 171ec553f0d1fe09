"""Exceptions for the orchestration engine.

Tool execution failures are normally reported inside a ``ToolResponse`` rather
than raised; the classes below cover everything that surfaces to callers.
"""

from typing import Any, Optional


class OrchestratorError(Exception):
    """Base exception for the orchestration engine."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class AuthenticationError(OrchestratorError):
    """Missing, invalid or expired API key, or insufficient permission."""

    code = "INVALID_API_KEY"


class RateLimitExceeded(OrchestratorError):
    """A sliding-window limit rejected the request."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, identifier: str, retry_after: Optional[float] = None) -> None:
        self.identifier = identifier
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for '{identifier}'")


class ValidationError(OrchestratorError):
    """Input failed sanitization or schema validation."""

    code = "VALIDATION_ERROR"


class ServerNotFoundError(OrchestratorError):
    """No server is registered under the requested name."""

    code = "SERVER_NOT_FOUND"

    def __init__(self, server: str) -> None:
        self.server = server
        super().__init__(f"MCP server '{server}' not found")


class ToolExecutionError(OrchestratorError):
    """A remote tool call failed."""

    code = "TOOL_EXECUTION_ERROR"


class WorkflowError(OrchestratorError):
    """Base exception for workflow problems."""

    code = "WORKFLOW_ERROR"


class WorkflowValidationError(WorkflowError):
    """Workflow definition is malformed (bad references, cycles)."""

    code = "WORKFLOW_VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class WorkflowNotFoundError(WorkflowError):
    """No workflow is registered under the requested id."""

    code = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' not found")


class WorkflowStepError(WorkflowError):
    """A single workflow step failed."""

    code = "WORKFLOW_STEP_ERROR"

    def __init__(self, step_id: str, message: str) -> None:
        self.step_id = step_id
        super().__init__(message)


class PlaceholderResolutionError(WorkflowError):
    """A ``${...}`` argument placeholder could not be resolved."""

    code = "PLACEHOLDER_RESOLUTION_ERROR"

    def __init__(self, placeholder: str, reason: str) -> None:
        self.placeholder = placeholder
        super().__init__(f"Cannot resolve placeholder '${{{placeholder}}}': {reason}")


class ExecutionNotFoundError(WorkflowError):
    """No execution is recorded under the requested id."""

    code = "EXECUTION_NOT_FOUND"

    def __init__(self, execution_id: str) -> None:
        self.execution_id = execution_id
        super().__init__(f"Execution '{execution_id}' not found")


class SwarmError(OrchestratorError):
    """Base exception for swarm coordination."""

    code = "SWARM_ERROR"


class SwarmNotFoundError(SwarmError):
    """No active swarm is recorded under the requested id."""

    code = "SWARM_NOT_FOUND"

    def __init__(self, swarm_id: str) -> None:
        self.swarm_id = swarm_id
        super().__init__(f"Swarm '{swarm_id}' not found")


class SwarmPlatformError(SwarmError):
    """The external agent platform rejected or failed a request."""

    code = "SWARM_PLATFORM_ERROR"


class DecryptionError(OrchestratorError):
    """Ciphertext could not be authenticated or decoded."""

    code = "DECRYPTION_ERROR"
