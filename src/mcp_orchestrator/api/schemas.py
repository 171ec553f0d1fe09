"""Request bodies accepted by the HTTP API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import ToolCall


class BatchCallRequest(BaseModel):
    """Body of ``POST /tool/batch``."""

    calls: list[ToolCall] = Field(..., description="Tool calls to run concurrently")


class WorkflowExecuteRequest(BaseModel):
    """Body of ``POST /workflow/execute``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_id: str = Field(..., min_length=1, description="Registered workflow id")
    context: dict[str, Any] = Field(default_factory=dict, description="Execution metadata")


class SwarmTaskRequest(BaseModel):
    """Body of ``POST /swarm/{id}/task``."""

    task: str = Field(..., min_length=1, description="Natural-language task description")
    context: dict[str, Any] = Field(default_factory=dict, description="Extra request arguments")
