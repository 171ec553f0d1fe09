"""Workflow engine for the orchestration engine.

This module registers declarative step DAGs and drives their executions:
steps are pulled from a per-execution ``TaskQueue`` and dispatched through the
tool-call client, with results folded back into the execution record.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Optional

import networkx as nx

from ..exceptions import (
    ExecutionNotFoundError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowStepError,
    WorkflowValidationError,
)
from ..models import ErrorPolicy, ExecutionStatus, ToolCall, WorkflowConfig, WorkflowExecution, WorkflowStep
from ..tools import ToolClient
from ..utils import generate_execution_id, get_logger
from .task_queue import TaskQueue
from .templating import resolve_arguments

if TYPE_CHECKING:
    from ..security.audit import AuditLogger

logger = get_logger(__name__)

PRIORITY_PER_DEPENDENT = 10

# (data, error message); error is None on success
StepOutcome = tuple[Any, Optional[str]]


def build_dependency_graph(config: WorkflowConfig) -> nx.DiGraph:
    """Build the step dependency graph.

    Edges point from a dependency to the step that depends on it.

    Args:
        config: Workflow configuration

    Returns:
        Directed graph of step ids
    """
    graph = nx.DiGraph()
    for step in config.steps:
        graph.add_node(step.id)
    for step in config.steps:
        for dep in step.depends_on:
            graph.add_edge(dep, step.id)
    return graph


def validate_workflow_graph(config: WorkflowConfig) -> nx.DiGraph:
    """Check that a workflow's steps form a well-formed DAG.

    Args:
        config: Workflow configuration

    Returns:
        The dependency graph

    Raises:
        WorkflowValidationError: On duplicate step ids, unknown dependencies
            or cycles
    """
    seen: set[str] = set()
    for step in config.steps:
        if step.id in seen:
            raise WorkflowValidationError(f"Duplicate step id '{step.id}' in workflow '{config.id}'", field="steps")
        seen.add(step.id)

    for step in config.steps:
        for dep in step.depends_on:
            if dep not in seen:
                raise WorkflowValidationError(
                    f"Step '{step.id}' depends on unknown step '{dep}'", field=f"steps.{step.id}.dependsOn"
                )

    graph = build_dependency_graph(config)
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return graph

    path = [edge[0] for edge in cycle] + [cycle[0][0]]
    raise WorkflowValidationError(
        f"Workflow '{config.id}' contains a dependency cycle: {' -> '.join(path)}", field="steps"
    )


class WorkflowEngine:
    """Registers workflows and runs their executions."""

    def __init__(
        self,
        client: ToolClient,
        audit_logger: Optional["AuditLogger"] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """Initialize the workflow engine.

        Args:
            client: Tool-call client used to dispatch steps
            audit_logger: Optional audit log receiving one entry per step
            clock: Monotonic time source in seconds for workflow deadlines
                (default: the running event loop's clock)
        """
        self.client = client
        self.clock = clock
        self.audit_logger = audit_logger
        self.workflows: dict[str, WorkflowConfig] = {}
        self.executions: dict[str, WorkflowExecution] = {}
        self._runs: dict[str, asyncio.Task] = {}

    # Registry

    def register_workflow(self, config: WorkflowConfig | dict) -> WorkflowConfig:
        """Register a workflow, replacing any previous one with the same id.

        Args:
            config: Workflow configuration (validated if given as a dict)

        Returns:
            The stored configuration

        Raises:
            WorkflowValidationError: If the step graph is malformed
        """
        if isinstance(config, dict):
            config = WorkflowConfig.model_validate(config)

        validate_workflow_graph(config)
        self.workflows[config.id] = config
        logger.info(f"Registered workflow: {config.id} ({len(config.steps)} steps)")
        return config

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowConfig]:
        """Get a workflow by id."""
        return self.workflows.get(workflow_id)

    def list_workflows(self) -> list[WorkflowConfig]:
        """List registered workflows."""
        return list(self.workflows.values())

    # Executions

    async def execute_workflow(self, workflow_id: str, context: Optional[dict[str, Any]] = None) -> str:
        """Start a workflow execution in the background.

        Args:
            workflow_id: Registered workflow id
            context: Caller-supplied metadata available to ``${metadata.*}``

        Returns:
            The new execution id

        Raises:
            WorkflowNotFoundError: If the workflow is not registered
        """
        workflow = self.workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        execution = WorkflowExecution(
            workflow_id=workflow_id,
            execution_id=generate_execution_id(),
            metadata=dict(context or {}),
        )
        self.executions[execution.execution_id] = execution

        task = asyncio.create_task(self._run(workflow, execution), name=execution.execution_id)
        self._runs[execution.execution_id] = task
        task.add_done_callback(lambda _: self._runs.pop(execution.execution_id, None))

        logger.info(
            f"Started execution {execution.execution_id} of workflow {workflow_id}",
            extra={"orchestration": {"execution_id": execution.execution_id, "workflow_id": workflow_id}},
        )
        return execution.execution_id

    async def wait_for_execution(self, execution_id: str, timeout: Optional[float] = None) -> WorkflowExecution:
        """Wait until an execution's run has finished.

        Args:
            execution_id: Execution id
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            The execution record

        Raises:
            ExecutionNotFoundError: If the execution is unknown
            asyncio.TimeoutError: If the run does not finish in time
        """
        execution = self.executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)

        task = self._runs.get(execution_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        return execution

    def cancel_execution(self, execution_id: str) -> bool:
        """Cancel a running execution.

        Cancellation is cooperative: no new steps are scheduled, but tool
        calls already dispatched run to completion and their results are
        discarded.

        Args:
            execution_id: Execution id

        Returns:
            True if the execution was running and is now cancelled
        """
        execution = self.executions.get(execution_id)
        if execution is None or execution.status != ExecutionStatus.RUNNING:
            return False

        execution.mark_finished(ExecutionStatus.CANCELLED)
        logger.info(f"Cancelled execution {execution_id}")
        return True

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get an execution by id."""
        return self.executions.get(execution_id)

    def list_executions(self, workflow_id: Optional[str] = None) -> list[WorkflowExecution]:
        """List executions, optionally for a single workflow."""
        executions = self.executions.values()
        if workflow_id is not None:
            return [e for e in executions if e.workflow_id == workflow_id]
        return list(executions)

    def active_executions(self) -> list[WorkflowExecution]:
        """List executions that are pending or running."""
        return [e for e in self.executions.values() if not e.is_terminal]

    async def shutdown(self) -> None:
        """Cancel every unfinished run and mark its execution cancelled."""
        tasks = list(self._runs.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for execution in self.active_executions():
            execution.mark_finished(ExecutionStatus.CANCELLED)

    # Scheduling

    async def _run(self, workflow: WorkflowConfig, execution: WorkflowExecution) -> None:
        execution.mark_running()
        in_flight: dict[asyncio.Task, WorkflowStep] = {}

        try:
            await self._schedule(workflow, execution, in_flight)
        except Exception as e:
            logger.exception(f"Execution {execution.execution_id} crashed: {e}")
            if not execution.is_terminal:
                execution.errors.append(str(e))
                execution.mark_finished(ExecutionStatus.FAILED)
        finally:
            for task in in_flight:
                task.cancel()

    async def _schedule(
        self,
        workflow: WorkflowConfig,
        execution: WorkflowExecution,
        in_flight: dict[asyncio.Task, WorkflowStep],
    ) -> None:
        queue = TaskQueue(workflow.max_concurrency)
        dependents = workflow.dependent_counts()
        for step in workflow.steps:
            queue.add_task(step, priority=PRIORITY_PER_DEPENDENT * dependents[step.id])

        clock = self.clock or asyncio.get_running_loop().time
        deadline = clock() + workflow.timeout
        stopped = False
        timed_out = False

        def settle(done: set[asyncio.Task]) -> None:
            nonlocal stopped
            for task in done:
                step = in_flight.pop(task)
                data, error = task.result()
                cancelled = execution.status == ExecutionStatus.CANCELLED

                if error is None:
                    queue.complete_task(step.id)
                    if not cancelled:
                        execution.results[step.id] = data
                        execution.completed_steps.append(step.id)
                    continue

                queue.fail_task(step.id)
                if cancelled:
                    continue
                execution.failed_steps.append(step.id)
                execution.errors.append(f"Step {step.id}: {error}")
                if workflow.effective_policy(step) == ErrorPolicy.STOP:
                    logger.error(f"Step {step.id} failed with stop policy; halting execution {execution.execution_id}")
                    stopped = True
                else:
                    logger.warning(f"Step {step.id} failed; continuing execution {execution.execution_id}")

        while True:
            if execution.status == ExecutionStatus.CANCELLED or stopped:
                break
            if queue.is_empty() and not in_flight:
                break
            if clock() >= deadline:
                timed_out = True
                break

            while (step := queue.get_next_task()) is not None:
                execution.current_step = step.id
                task = asyncio.create_task(self._execute_step(workflow, execution, step))
                in_flight[task] = step

            if not in_flight:
                # Queue empty, or the remaining steps can never be released
                break

            done, _ = await asyncio.wait(
                in_flight.keys(), timeout=max(0.0, deadline - clock()), return_when=asyncio.FIRST_COMPLETED
            )
            settle(done)

        # Let dispatched steps settle before writing the terminal status
        while in_flight:
            done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
            settle(done)

        for step in queue.drain():
            execution.skipped_steps.append(step.id)

        if execution.status == ExecutionStatus.CANCELLED:
            logger.info(f"Execution {execution.execution_id} ended cancelled")
            return

        if timed_out:
            execution.errors.append(f"Workflow timed out after {workflow.timeout}s")

        if execution.failed_steps or execution.skipped_steps or timed_out:
            execution.mark_finished(ExecutionStatus.FAILED)
        else:
            execution.mark_finished(ExecutionStatus.COMPLETED)

        logger.info(
            f"Execution {execution.execution_id} finished {execution.status.value}: "
            f"{len(execution.completed_steps)} completed, {len(execution.failed_steps)} failed, "
            f"{len(execution.skipped_steps)} skipped",
            extra={"orchestration": {"execution_id": execution.execution_id, "workflow_id": workflow.id}},
        )

    async def _execute_step(
        self,
        workflow: WorkflowConfig,
        execution: WorkflowExecution,
        step: WorkflowStep,
    ) -> StepOutcome:
        logger.debug(f"Dispatching step {step.id} ({step.server}:{step.tool})")
        arguments: dict[str, Any] = step.arguments
        try:
            arguments = resolve_arguments(step.arguments, execution.results, execution.metadata)
            response = await self.client.call_tool(
                ToolCall(
                    server=step.server,
                    tool=step.tool,
                    arguments=arguments,
                    timeout=step.timeout,
                    retries=step.retries,
                )
            )
            if not response.success:
                raise WorkflowStepError(step.id, response.error or "Unknown error")
            outcome: StepOutcome = (response.data, None)
        except WorkflowError as e:
            outcome = (None, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error in step {step.id}: {e}")
            outcome = (None, str(e) or type(e).__name__)

        self._audit(execution, step, arguments, outcome[1])
        return outcome

    def _audit(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
        arguments: dict[str, Any],
        error: Optional[str],
    ) -> None:
        if self.audit_logger is None:
            return
        user_id = execution.metadata.get("userId")
        self.audit_logger.log(
            action="workflow_step",
            user_id=str(user_id) if user_id is not None else None,
            server=step.server,
            tool=step.tool,
            arguments=arguments,
            success=error is None,
            error=error,
        )
