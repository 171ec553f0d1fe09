"""Swarm entities for the orchestration engine."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SwarmTopology(str, Enum):
    """Agent interconnection topology."""

    HIERARCHICAL = "hierarchical"
    MESH = "mesh"
    RING = "ring"
    STAR = "star"


class SwarmStrategy(str, Enum):
    """Task distribution strategy; also selects the agent roster."""

    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"
    ADAPTIVE = "adaptive"
    BALANCED = "balanced"


class SwarmConfig(BaseModel):
    """Configuration for a new swarm.

    Attributes:
        topology: Interconnection topology
        max_agents: Maximum roster size
        strategy: Distribution strategy
        auto_scale: Whether the platform may scale the roster
        coordination_mode: Centralized or distributed coordination
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    topology: SwarmTopology
    max_agents: int = Field(default=8, ge=1, le=20)
    strategy: SwarmStrategy = SwarmStrategy.ADAPTIVE
    auto_scale: bool = True
    coordination_mode: str = Field(default="distributed", pattern=r"^(centralized|distributed)$")


class SwarmRecord(BaseModel):
    """Local bookkeeping for an active swarm.

    Attributes:
        swarm_id: Swarm identifier
        config: Creation config
        agents: Agent ids returned by the platform
        failed_spawns: Number of agent spawns that failed
        status: Swarm status
        created_at: Creation timestamp
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    swarm_id: str
    config: SwarmConfig
    agents: list[str] = Field(default_factory=list)
    failed_spawns: int = 0
    status: str = "active"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
