"""Unit tests for the workflow engine."""

import asyncio

import pytest

from mcp_orchestrator.exceptions import ExecutionNotFoundError, WorkflowNotFoundError, WorkflowValidationError
from mcp_orchestrator.execution import WorkflowEngine, build_dependency_graph, validate_workflow_graph
from mcp_orchestrator.models import ExecutionStatus, WorkflowConfig


def workflow(steps, **kwargs) -> WorkflowConfig:
    return WorkflowConfig.model_validate({"id": "wf", "name": "Test workflow", "steps": steps, **kwargs})


def task(step_id, tool="echo", deps=(), **kwargs):
    return {"id": step_id, "server": "local", "tool": tool, "dependsOn": list(deps), **kwargs}


class TestGraphValidation:
    """Test suite for workflow graph validation."""

    def test_valid_dag(self):
        graph = validate_workflow_graph(workflow([task("a"), task("b", deps=["a"]), task("c", deps=["a", "b"])]))
        assert set(graph.edges) == {("a", "b"), ("a", "c"), ("b", "c")}

    def test_build_dependency_graph_keeps_isolated_steps(self):
        graph = build_dependency_graph(workflow([task("a"), task("b")]))
        assert set(graph.nodes) == {"a", "b"}
        assert graph.number_of_edges() == 0

    def test_duplicate_step_ids(self):
        with pytest.raises(WorkflowValidationError, match="Duplicate step id 'a'"):
            validate_workflow_graph(workflow([task("a"), task("a")]))

    def test_unknown_dependency(self):
        with pytest.raises(WorkflowValidationError, match="unknown step 'ghost'") as exc_info:
            validate_workflow_graph(workflow([task("a", deps=["ghost"])]))
        assert exc_info.value.field == "steps.a.dependsOn"

    def test_cycle(self):
        with pytest.raises(WorkflowValidationError, match="cycle") as exc_info:
            validate_workflow_graph(workflow([task("a", deps=["c"]), task("b", deps=["a"]), task("c", deps=["b"])]))
        message = exc_info.value.message
        for name in ("a", "b", "c"):
            assert name in message

    def test_self_dependency(self):
        with pytest.raises(WorkflowValidationError, match="cycle"):
            validate_workflow_graph(workflow([task("a", deps=["a"])]))


class TestWorkflowRegistry:
    """Test suite for workflow registration."""

    def test_register_and_lookup(self, client):
        engine = WorkflowEngine(client)
        engine.register_workflow(workflow([task("a")]))
        assert engine.get_workflow("wf").name == "Test workflow"
        assert [w.id for w in engine.list_workflows()] == ["wf"]
        assert engine.get_workflow("other") is None

    def test_register_from_dict(self, client):
        engine = WorkflowEngine(client)
        config = engine.register_workflow({"id": "d", "name": "Dict", "steps": [task("a")]})
        assert engine.get_workflow("d") is config

    def test_rejects_cyclic_workflow(self, client):
        engine = WorkflowEngine(client)
        with pytest.raises(WorkflowValidationError):
            engine.register_workflow(workflow([task("a", deps=["b"]), task("b", deps=["a"])]))
        assert engine.list_workflows() == []


class TestWorkflowExecution:
    """Test suite for running workflows."""

    @pytest.fixture
    def engine(self, client, audit_logger):
        return WorkflowEngine(client, audit_logger=audit_logger)

    async def run(self, engine, config, context=None, timeout=5.0):
        engine.register_workflow(config)
        execution_id = await engine.execute_workflow(config.id, context)
        return await engine.wait_for_execution(execution_id, timeout)

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, engine):
        with pytest.raises(WorkflowNotFoundError):
            await engine.execute_workflow("missing")

    @pytest.mark.asyncio
    async def test_unknown_execution(self, engine):
        with pytest.raises(ExecutionNotFoundError):
            await engine.wait_for_execution("exec_missing")

    @pytest.mark.asyncio
    async def test_execution_ids_are_unique(self, engine):
        engine.register_workflow(workflow([task("a")]))
        ids = {await engine.execute_workflow("wf") for _ in range(5)}
        assert len(ids) == 5
        assert all(execution_id.startswith("exec_") for execution_id in ids)
        for execution_id in ids:
            await engine.wait_for_execution(execution_id, 5.0)

    @pytest.mark.asyncio
    async def test_execute_returns_before_completion(self, engine, backend):
        gate = asyncio.Event()

        async def blocked(**kwargs):
            await gate.wait()
            return "released"

        backend.register("blocked", blocked)
        engine.register_workflow(workflow([task("a", tool="blocked")]))

        execution_id = await engine.execute_workflow("wf")
        await asyncio.sleep(0)
        assert engine.get_execution(execution_id).status == ExecutionStatus.RUNNING

        gate.set()
        execution = await engine.wait_for_execution(execution_id, 5.0)
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.results == {"a": "released"}

    @pytest.mark.asyncio
    async def test_dependencies_complete_before_dependents_start(self, engine, backend, probe):
        """Test that a step never starts before its dependencies complete."""
        backend.register("probe", probe)
        config = workflow(
            [
                task("a", tool="probe", arguments={"name": "a"}),
                task("b", tool="probe", deps=["a"], arguments={"name": "b"}),
                task("c", tool="probe", deps=["a"], arguments={"name": "c"}),
                task("d", tool="probe", deps=["b", "c"], arguments={"name": "d"}),
            ],
            maxConcurrency=4,
        )

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.COMPLETED
        assert probe.started[0] == "a"
        assert probe.started[-1] == "d"
        assert probe.finished.index("a") < probe.started.index("b")
        assert probe.finished.index("a") < probe.started.index("c")
        assert max(probe.finished.index("b"), probe.finished.index("c")) < probe.started.index("d")
        assert execution.completed_steps[0] == "a"
        assert execution.completed_steps[-1] == "d"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_concurrency", [1, 2, 3])
    async def test_concurrency_bound(self, engine, backend, probe, max_concurrency):
        """Test that running steps never exceed maxConcurrency."""
        backend.register("probe", probe)
        config = workflow(
            [task(f"s{i}", tool="probe", arguments={"name": f"s{i}"}) for i in range(6)],
            maxConcurrency=max_concurrency,
        )

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.COMPLETED
        assert len(execution.completed_steps) == 6
        assert probe.peak == max_concurrency

    @pytest.mark.asyncio
    async def test_steps_with_more_dependents_start_first(self, engine, backend, probe):
        backend.register("probe", probe)
        config = workflow(
            [
                task("leaf", tool="probe", arguments={"name": "leaf"}),
                task("hub", tool="probe", arguments={"name": "hub"}),
                task("x", tool="probe", deps=["hub"], arguments={"name": "x"}),
                task("y", tool="probe", deps=["hub"], arguments={"name": "y"}),
            ],
            maxConcurrency=1,
        )

        await self.run(engine, config)
        assert probe.started[:2] == ["hub", "leaf"]

    @pytest.mark.asyncio
    async def test_results_flow_between_steps(self, engine, backend):
        backend.register("lookup", lambda **kwargs: {"owner": {"email": "ops@example.com"}})
        config = workflow(
            [
                task("lookup", tool="lookup"),
                task(
                    "notify",
                    deps=["lookup"],
                    arguments={"to": "${results.lookup.owner.email}", "project": "${metadata.projectId}"},
                ),
            ]
        )

        execution = await self.run(engine, config, context={"projectId": "p-1"})
        assert execution.results["notify"] == {"to": "ops@example.com", "project": "p-1"}
        assert execution.metadata == {"projectId": "p-1"}

    @pytest.mark.asyncio
    async def test_unresolved_placeholder_fails_step(self, engine, backend, flaky_tool):
        tool = flaky_tool(0)
        backend.register("count", tool)
        config = workflow([task("a", tool="count", arguments={"x": "${results.nothing}"})])

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.failed_steps == ["a"]
        assert "Cannot resolve placeholder" in execution.errors[0]
        assert tool.calls == 0

    @pytest.mark.asyncio
    async def test_stop_policy_single_step(self, engine):
        """Test that a failing single-step workflow with stop fails with one error."""
        config = workflow([task("only", tool="fail", retries=0, onError="stop")])

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.FAILED
        assert len(execution.errors) == 1
        assert execution.errors[0] == "Step only: tool exploded"
        assert execution.completed_steps == []
        assert execution.failed_steps == ["only"]
        assert execution.end_time is not None

    @pytest.mark.asyncio
    async def test_stop_policy_skips_pending_steps(self, engine):
        config = workflow(
            [
                task("a", tool="fail", retries=0),
                task("b", deps=["a"]),
                task("c", deps=["b"]),
            ],
            onError="stop",
        )

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.failed_steps == ["a"]
        assert execution.skipped_steps == ["b", "c"]
        assert execution.completed_steps == []

    @pytest.mark.asyncio
    async def test_continue_policy_runs_independent_steps(self, engine):
        config = workflow(
            [
                task("bad", tool="fail", retries=0),
                task("good", arguments={"v": 1}),
                task("after_bad", deps=["bad"]),
                task("after_good", deps=["good"]),
            ],
            onError="continue",
            maxConcurrency=1,
        )

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.failed_steps == ["bad"]
        assert sorted(execution.completed_steps) == ["after_good", "good"]
        assert execution.skipped_steps == ["after_bad"]

    @pytest.mark.asyncio
    async def test_step_retries_override(self, engine, backend, flaky_tool):
        tool = flaky_tool(2)
        backend.register("flaky", tool)
        config = workflow([task("a", tool="flaky", retries=3)])

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.COMPLETED
        assert tool.calls == 3

    @pytest.mark.asyncio
    async def test_workflow_timeout(self, engine, backend):
        async def slow(**kwargs):
            await asyncio.sleep(0.2)
            return "slow"

        backend.register("slow", slow)
        config = workflow(
            [task("a", tool="slow"), task("b", deps=["a"])],
            timeout=0.05,
        )

        execution = await self.run(engine, config)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.errors[-1] == "Workflow timed out after 0.05s"
        assert execution.completed_steps == ["a"]
        assert execution.skipped_steps == ["b"]

    @pytest.mark.asyncio
    async def test_last_step_settling_at_deadline_completes(self, client, audit_logger, backend, clock):
        engine = WorkflowEngine(client, audit_logger=audit_logger, clock=clock)

        def finish_at_deadline(**kwargs):
            clock.advance(1.0)
            return "done"

        backend.register("edge", finish_at_deadline)
        execution = await self.run(engine, workflow([task("a", tool="edge")], timeout=1.0))

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.completed_steps == ["a"]
        assert execution.errors == []

    @pytest.mark.asyncio
    async def test_no_step_scheduled_after_deadline(self, client, audit_logger, backend, clock):
        engine = WorkflowEngine(client, audit_logger=audit_logger, clock=clock)

        def finish_at_deadline(**kwargs):
            clock.advance(1.0)
            return "done"

        backend.register("edge", finish_at_deadline)
        config = workflow([task("a", tool="edge"), task("b", deps=["a"])], timeout=1.0)
        execution = await self.run(engine, config)

        assert execution.status == ExecutionStatus.FAILED
        assert execution.completed_steps == ["a"]
        assert execution.skipped_steps == ["b"]
        assert execution.errors == ["Workflow timed out after 1.0s"]

    @pytest.mark.asyncio
    async def test_cancel_execution(self, engine, backend):
        gate = asyncio.Event()

        async def blocked(**kwargs):
            await gate.wait()
            return "late"

        backend.register("blocked", blocked)
        engine.register_workflow(workflow([task("a", tool="blocked"), task("b", deps=["a"])]))
        execution_id = await engine.execute_workflow("wf")
        await asyncio.sleep(0.01)

        assert engine.cancel_execution(execution_id)
        assert not engine.cancel_execution(execution_id)

        gate.set()
        execution = await engine.wait_for_execution(execution_id, 5.0)
        assert execution.status == ExecutionStatus.CANCELLED
        assert execution.results == {}
        assert execution.completed_steps == []
        assert execution.skipped_steps == ["b"]

    @pytest.mark.asyncio
    async def test_cancel_unknown_or_finished(self, engine):
        assert not engine.cancel_execution("exec_missing")
        execution = await self.run(engine, workflow([task("a")]))
        assert not engine.cancel_execution(execution.execution_id)

    @pytest.mark.asyncio
    async def test_list_executions(self, engine):
        engine.register_workflow(workflow([task("a")]))
        engine.register_workflow({"id": "other", "name": "Other", "steps": [task("a")]})
        first = await engine.execute_workflow("wf")
        second = await engine.execute_workflow("other")
        await engine.wait_for_execution(first, 5.0)
        await engine.wait_for_execution(second, 5.0)

        assert len(engine.list_executions()) == 2
        assert [e.execution_id for e in engine.list_executions("wf")] == [first]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_runs(self, engine, backend):
        backend.register("hang", lambda **kwargs: asyncio.sleep(10))
        engine.register_workflow(workflow([task("a", tool="hang")]))
        execution_id = await engine.execute_workflow("wf")
        await asyncio.sleep(0.01)

        await engine.shutdown()
        assert engine.get_execution(execution_id).status == ExecutionStatus.CANCELLED
        assert engine.active_executions() == []

    @pytest.mark.asyncio
    async def test_audit_entry_per_step(self, engine, audit_logger):
        config = workflow([task("a", arguments={"k": "v"}), task("b", deps=["a"])])
        await self.run(engine, config, context={"userId": "u-9"})

        steps = audit_logger.get_logs(action="workflow_step")
        assert len(steps) == 2
        assert all(entry.user_id == "u-9" for entry in steps)
        assert steps[-1].arguments == {"k": "v"}
