"""Swarm manager for the orchestration engine.

A swarm is a named pool of opaque agents hosted by an external platform. This
module only coordinates: every platform interaction is a tool call.
"""

from typing import Any, Optional

from ..exceptions import SwarmNotFoundError, SwarmPlatformError
from ..models import SwarmConfig, SwarmRecord, SwarmStrategy, ToolCall
from ..tools import ToolClient
from ..utils import generate_swarm_id, get_logger

logger = get_logger(__name__)

AGENT_CAPABILITIES: dict[str, list[str]] = {
    "researcher": ["data_analysis", "web_search", "document_processing"],
    "coder": ["code_generation", "debugging", "testing", "refactoring"],
    "analyst": ["performance_analysis", "optimization", "metrics_collection"],
    "architect": ["system_design", "integration_planning", "scalability_analysis"],
    "tester": ["unit_testing", "integration_testing", "load_testing", "security_testing"],
    "coordinator": ["task_distribution", "progress_monitoring", "resource_allocation"],
    "optimizer": ["performance_tuning", "resource_optimization", "cost_reduction"],
}

STRATEGY_AGENTS: dict[SwarmStrategy, list[str]] = {
    SwarmStrategy.PARALLEL: ["coder", "tester", "analyst"],
    SwarmStrategy.SEQUENTIAL: ["researcher", "architect", "coder"],
    SwarmStrategy.ADAPTIVE: ["researcher", "coder", "tester", "optimizer"],
    SwarmStrategy.BALANCED: ["coder", "tester"],
}


def select_agent_types(config: SwarmConfig) -> list[str]:
    """Choose the agent roster for a swarm.

    A coordinator is always first; the rest depends on the strategy. The
    roster is truncated to ``max_agents``.

    Args:
        config: Swarm configuration

    Returns:
        Agent archetype names
    """
    roster = ["coordinator"] + STRATEGY_AGENTS.get(config.strategy, STRATEGY_AGENTS[SwarmStrategy.BALANCED])
    return roster[: config.max_agents]


def _extract_id(data: Any, *keys: str) -> Optional[str]:
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if value:
                return str(value)
    return None


class SwarmManager:
    """Creates, tasks and destroys swarms on the agent platform."""

    def __init__(self, client: ToolClient, platform_server: str = "claude-flow") -> None:
        """Initialize the swarm manager.

        Args:
            client: Tool-call client
            platform_server: Server hosting the agent platform
        """
        self.client = client
        self.platform_server = platform_server
        self.swarms: dict[str, SwarmRecord] = {}

    async def _call(self, tool: str, arguments: dict[str, Any]):
        return await self.client.call_tool(ToolCall(server=self.platform_server, tool=tool, arguments=arguments))

    async def initialize_swarm(self, config: SwarmConfig | dict) -> str:
        """Create a swarm and spawn its agents.

        Agent spawning is best-effort: failed spawns are not retried and are
        counted in ``failed_spawns``.

        Args:
            config: Swarm configuration (validated if given as a dict)

        Returns:
            The new swarm id

        Raises:
            SwarmPlatformError: If the platform rejects swarm initialization
        """
        if isinstance(config, dict):
            config = SwarmConfig.model_validate(config)

        init = await self._call(
            "swarm_init",
            {"topology": config.topology.value, "maxAgents": config.max_agents, "strategy": config.strategy.value},
        )
        if not init.success:
            raise SwarmPlatformError(f"Failed to initialize swarm: {init.error}")

        record = SwarmRecord(swarm_id=generate_swarm_id(), config=config)

        for agent_type in select_agent_types(config):
            spawn = await self._call(
                "agent_spawn",
                {"type": agent_type, "capabilities": AGENT_CAPABILITIES.get(agent_type, [])},
            )
            agent_id = _extract_id(spawn.data, "agentId", "agent_id", "id") if spawn.success else None
            if agent_id is None:
                record.failed_spawns += 1
                logger.warning(f"Failed to spawn {agent_type} agent for {record.swarm_id}: {spawn.error or 'no agent id'}")
                continue
            record.agents.append(agent_id)

        self.swarms[record.swarm_id] = record
        logger.info(
            f"Created swarm {record.swarm_id} ({config.topology.value}, {config.strategy.value}) "
            f"with {len(record.agents)} agents, {record.failed_spawns} failed spawns"
        )
        return record.swarm_id

    async def orchestrate_task(self, swarm_id: str, task: str, context: Optional[dict[str, Any]] = None) -> str:
        """Forward a task description to a swarm.

        Args:
            swarm_id: Swarm id
            task: Natural-language task description
            context: Extra arguments merged into the request

        Returns:
            Opaque task id assigned by the platform

        Raises:
            SwarmNotFoundError: If the swarm is unknown
            SwarmPlatformError: If the platform fails or returns no task id
        """
        record = self.swarms.get(swarm_id)
        if record is None:
            raise SwarmNotFoundError(swarm_id)

        arguments: dict[str, Any] = {
            "task": task,
            "strategy": record.config.strategy.value,
            "priority": "high",
            "dependencies": [],
        }
        arguments.update(context or {})

        response = await self._call("task_orchestrate", arguments)
        if not response.success:
            raise SwarmPlatformError(f"Task orchestration failed: {response.error}")

        task_id = _extract_id(response.data, "taskId", "task_id", "id")
        if task_id is None:
            raise SwarmPlatformError("Task orchestration returned no task id")

        logger.info(f"Swarm {swarm_id} accepted task {task_id}")
        return task_id

    async def get_swarm_status(self, swarm_id: str) -> Optional[dict[str, Any]]:
        """Get local bookkeeping merged with the platform's status.

        Args:
            swarm_id: Swarm id

        Returns:
            Status dict (``remote`` is None when the platform call fails), or
            None for unknown swarms
        """
        record = self.swarms.get(swarm_id)
        if record is None:
            return None

        response = await self._call("swarm_status", {"swarmId": swarm_id})
        status = record.model_dump(mode="json", by_alias=True)
        status["remote"] = response.data if response.success else None
        return status

    async def destroy_swarm(self, swarm_id: str) -> bool:
        """Destroy a swarm.

        Args:
            swarm_id: Swarm id

        Returns:
            True if the platform destroyed it and the record was removed
        """
        if swarm_id not in self.swarms:
            return False

        response = await self._call("swarm_destroy", {"swarmId": swarm_id})
        if not response.success:
            logger.warning(f"Failed to destroy swarm {swarm_id}: {response.error}")
            return False

        del self.swarms[swarm_id]
        logger.info(f"Destroyed swarm {swarm_id}")
        return True

    def get_swarm(self, swarm_id: str) -> Optional[SwarmRecord]:
        """Get a swarm record by id."""
        return self.swarms.get(swarm_id)

    def list_active_swarms(self) -> list[SwarmRecord]:
        """List active swarms."""
        return list(self.swarms.values())
