"""Execution module for the orchestration engine."""

from .orchestrator import Orchestrator
from .swarm import AGENT_CAPABILITIES, SwarmManager, select_agent_types
from .task_queue import TaskQueue
from .templating import resolve_arguments, resolve_placeholder
from .workflow import WorkflowEngine, build_dependency_graph, validate_workflow_graph

__all__ = [
    "Orchestrator",
    "TaskQueue",
    "WorkflowEngine",
    "build_dependency_graph",
    "validate_workflow_graph",
    "resolve_arguments",
    "resolve_placeholder",
    "SwarmManager",
    "AGENT_CAPABILITIES",
    "select_agent_types",
]
