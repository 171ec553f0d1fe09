"""Workflow entities for the orchestration engine.

This module defines declarative step DAGs and the per-run execution record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StepType(str, Enum):
    """Kind of workflow step."""

    TASK = "task"
    CONDITION = "condition"
    PARALLEL = "parallel"
    LOOP = "loop"


class ErrorPolicy(str, Enum):
    """What a step failure does to the rest of the execution."""

    STOP = "stop"
    CONTINUE = "continue"
    RETRY = "retry"


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStep(BaseModel):
    """Definition of a workflow step.

    Attributes:
        id: Step identifier, unique within the workflow
        name: Human-readable name
        type: Step kind
        server: Server the step's tool lives on
        tool: Tool name
        arguments: Tool arguments, may contain ``${...}`` placeholders
        depends_on: Step ids that must complete first
        timeout: Per-attempt timeout override in seconds
        retries: Retry budget override
        on_error: Step failure policy (falls back to the workflow's)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Step identifier")
    name: Optional[str] = Field(None, description="Human-readable name")
    type: StepType = Field(default=StepType.TASK, description="Step kind")
    server: str = Field(..., min_length=1, description="Target server")
    tool: str = Field(..., min_length=1, description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    depends_on: list[str] = Field(default_factory=list, description="Prerequisite step ids")
    timeout: Optional[float] = Field(None, gt=0, description="Per-attempt timeout (seconds)")
    retries: Optional[int] = Field(None, ge=0, description="Retry budget override")
    on_error: Optional[ErrorPolicy] = Field(None, description="Failure policy")


class WorkflowConfig(BaseModel):
    """A registered workflow.

    Attributes:
        id: Workflow identifier
        name: Workflow name
        description: Workflow description
        steps: Ordered step list
        timeout: Scheduling deadline in seconds, measured from run start
        max_concurrency: Maximum steps running at once per execution
        on_error: Default failure policy
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Workflow identifier")
    name: str = Field(..., description="Workflow name")
    description: Optional[str] = Field(None, description="Workflow description")
    steps: list[WorkflowStep] = Field(..., min_length=1, description="Workflow steps")
    timeout: float = Field(default=300.0, gt=0, description="Scheduling deadline (seconds)")
    max_concurrency: int = Field(default=5, ge=1, description="Concurrent step limit")
    on_error: ErrorPolicy = Field(default=ErrorPolicy.STOP, description="Default failure policy")

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        """Get a step by id.

        Args:
            step_id: Step identifier

        Returns:
            Step or None if not found
        """
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def effective_policy(self, step: WorkflowStep) -> ErrorPolicy:
        """Get the failure policy that applies to a step."""
        return step.on_error or self.on_error

    def dependent_counts(self) -> dict[str, int]:
        """Count, for each step, how many steps declare it as a dependency.

        Returns:
            Mapping of step id to number of dependents
        """
        counts = {step.id: 0 for step in self.steps}
        for step in self.steps:
            for dep in step.depends_on:
                if dep in counts:
                    counts[dep] += 1
        return counts

    @property
    def step_ids(self) -> list[str]:
        """Get step ids in declaration order."""
        return [step.id for step in self.steps]


class WorkflowExecution(BaseModel):
    """One run of a workflow, mutated in place until terminal.

    Attributes:
        workflow_id: Owning workflow id
        execution_id: Globally unique execution id
        status: Current status
        start_time: Creation timestamp
        end_time: Terminal timestamp
        current_step: Most recently dispatched step
        completed_steps: Steps that finished successfully, in completion order
        failed_steps: Steps that failed, in failure order
        skipped_steps: Steps never scheduled because the run ended first
        results: Step id to step output
        errors: Error messages
        metadata: Caller-supplied context
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_id: str
    execution_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: Optional[datetime] = None
    current_step: Optional[str] = None
    completed_steps: list[str] = Field(default_factory=list)
    failed_steps: list[str] = Field(default_factory=list)
    skipped_steps: list[str] = Field(default_factory=list)
    results: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def mark_running(self) -> None:
        """Mark the execution as running."""
        self.status = ExecutionStatus.RUNNING

    def mark_finished(self, status: ExecutionStatus) -> None:
        """Move the execution to a terminal status.

        Args:
            status: Terminal status
        """
        self.status = status
        self.end_time = _utcnow()
        self.current_step = None

    @property
    def is_terminal(self) -> bool:
        """Check whether the execution has finished."""
        return self.status in TERMINAL_STATUSES

    @property
    def duration_seconds(self) -> Optional[float]:
        """Get execution duration, or None while still running."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()
