"""Orchestrator for the orchestration engine.

This module owns and wires the tool-call client, security manager, workflow
engine and swarm manager. Nothing is a module-level singleton: construct one
``Orchestrator`` at process start and pass it where needed.
"""

from typing import Any, Optional

from ..config import DEFAULT_SERVERS, OrchestratorSettings, default_workflows, load_security_config_from_env
from ..models import ExecutionStatus, ServerConfig, SwarmConfig, SwarmRecord, WorkflowConfig, WorkflowExecution
from ..security import AuditLogger, SecurityManager
from ..tools import ToolBackend, ToolClient
from ..utils import get_logger
from .swarm import SwarmManager
from .workflow import WorkflowEngine

logger = get_logger(__name__)


class Orchestrator:
    """Façade over the engine components."""

    def __init__(
        self,
        settings: Optional[OrchestratorSettings] = None,
        client: Optional[ToolClient] = None,
        security: Optional[SecurityManager] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Orchestrator settings (default: security from environment)
            client: Tool-call client to use instead of building one
            security: Security manager to use instead of building one
        """
        if settings is None:
            settings = OrchestratorSettings(security=load_security_config_from_env())
        self.settings = settings

        self.security = security or SecurityManager(
            settings.security, audit_logger=AuditLogger(settings.client.audit_log_size)
        )
        self.client = client or ToolClient(
            retry_delays=settings.client.retry_delays,
            audit_logger=self.security.audit_logger,
        )
        self.workflow_engine = WorkflowEngine(self.client, audit_logger=self.security.audit_logger)
        self.swarm_manager = SwarmManager(self.client, platform_server=settings.swarm_platform)

        if settings.register_defaults:
            for server in DEFAULT_SERVERS:
                self.client.register_server(server)
            for workflow in default_workflows():
                self.workflow_engine.register_workflow(workflow)

        for server in settings.servers:
            if server.enabled:
                self.client.register_server(server)
            else:
                logger.info(f"Skipping disabled server: {server.name}")
        for workflow in settings.workflows:
            self.workflow_engine.register_workflow(workflow)

        logger.info(
            f"Orchestrator ready: {len(self.client.list_servers())} servers, "
            f"{len(self.workflow_engine.workflows)} workflows"
        )

    # Servers

    def register_server(self, config: ServerConfig | dict, backend: Optional[ToolBackend] = None) -> ServerConfig:
        """Register a server with the tool-call client."""
        return self.client.register_server(config, backend)

    # Workflows

    def register_workflow(self, config: WorkflowConfig | dict) -> WorkflowConfig:
        """Register a workflow."""
        return self.workflow_engine.register_workflow(config)

    async def execute_workflow(self, workflow_id: str, context: Optional[dict[str, Any]] = None) -> str:
        """Start a workflow execution; returns the execution id."""
        return await self.workflow_engine.execute_workflow(workflow_id, context)

    def get_workflow_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Get an execution by id."""
        return self.workflow_engine.get_execution(execution_id)

    def list_workflow_executions(self, workflow_id: Optional[str] = None) -> list[WorkflowExecution]:
        """List executions, optionally for a single workflow."""
        return self.workflow_engine.list_executions(workflow_id)

    def cancel_workflow_execution(self, execution_id: str) -> bool:
        """Cancel a running execution."""
        return self.workflow_engine.cancel_execution(execution_id)

    # Swarms

    async def create_swarm(self, config: SwarmConfig | dict) -> str:
        """Create a swarm; returns the swarm id."""
        return await self.swarm_manager.initialize_swarm(config)

    async def orchestrate_swarm_task(
        self, swarm_id: str, task: str, context: Optional[dict[str, Any]] = None
    ) -> str:
        """Forward a task to a swarm; returns the platform task id."""
        return await self.swarm_manager.orchestrate_task(swarm_id, task, context)

    async def get_swarm_status(self, swarm_id: str) -> Optional[dict[str, Any]]:
        """Get a swarm's status, or None if unknown."""
        return await self.swarm_manager.get_swarm_status(swarm_id)

    async def destroy_swarm(self, swarm_id: str) -> bool:
        """Destroy a swarm."""
        return await self.swarm_manager.destroy_swarm(swarm_id)

    def list_active_swarms(self) -> list[SwarmRecord]:
        """List active swarms."""
        return self.swarm_manager.list_active_swarms()

    # Introspection

    async def health_check(self) -> dict[str, Any]:
        """Check engine and server health.

        Returns:
            ``workflows`` and ``swarms`` component flags, ``mcp`` (every server
            healthy) and the per-server map under ``servers``
        """
        servers = await self.client.health_check()
        return {
            "workflows": True,
            "swarms": True,
            "mcp": all(servers.values()),
            "servers": servers,
        }

    def get_stats(self) -> dict[str, int]:
        """Get engine counters."""
        executions = self.workflow_engine.list_executions()
        return {
            "workflows": len(self.workflow_engine.workflows),
            "executions": len(executions),
            "active_executions": sum(1 for e in executions if e.status == ExecutionStatus.RUNNING),
            "active_swarms": len(self.swarm_manager.list_active_swarms()),
            "total_steps": sum(len(e.completed_steps) for e in executions),
        }

    async def close(self) -> None:
        """Cancel unfinished executions and close backends."""
        logger.info("Shutting down orchestrator")
        await self.workflow_engine.shutdown()
        await self.client.close()
