"""Configuration schemas for the orchestration engine.

This module defines Pydantic models for validating configuration data.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models import ServerConfig, WorkflowConfig


class ClientRateLimitConfig(BaseModel):
    """Per-caller request admission limits."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    window: float = Field(default=60.0, gt=0, description="Window length in seconds")
    max_requests: int = Field(default=100, ge=1, description="Requests admitted per window")


class SecurityConfig(BaseModel):
    """Configuration for the security manager."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_keys: dict[str, str] = Field(default_factory=dict, description="Server name to API key")
    encryption_key: str = Field(..., min_length=32, description="Master encryption key")
    rate_limit: ClientRateLimitConfig = Field(default_factory=ClientRateLimitConfig)
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"], description="Origin allow-list")
    require_https: bool = Field(default=True, description="Reject plain HTTP requests")
    session_timeout: float = Field(default=3600.0, gt=0, description="Session lifetime in seconds")

    @field_validator("allowed_origins")
    @classmethod
    def strip_origins(cls, v: list[str]) -> list[str]:
        """Drop blank entries and surrounding whitespace."""
        origins = [origin.strip() for origin in v if origin.strip()]
        return origins or ["*"]


class ClientSettings(BaseModel):
    """Configuration for the tool-call client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    retry_delays: list[float] = Field(
        default_factory=lambda: [1.0, 2.0, 4.0], min_length=1, description="Backoff schedule in seconds"
    )
    audit_log_size: int = Field(default=10000, ge=1, description="Audit ring buffer capacity")

    @field_validator("retry_delays")
    @classmethod
    def non_negative_delays(cls, v: list[float]) -> list[float]:
        """Reject negative backoff delays."""
        if any(delay < 0 for delay in v):
            raise ValueError("retry delays must be non-negative")
        return v


class OrchestratorSettings(BaseModel):
    """Top-level configuration for the orchestrator."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    servers: list[ServerConfig] = Field(default_factory=list, description="Servers to register")
    workflows: list[WorkflowConfig] = Field(default_factory=list, description="Workflows to register")
    security: SecurityConfig
    client: ClientSettings = Field(default_factory=ClientSettings)
    swarm_platform: str = Field(default="claude-flow", description="Server hosting the agent platform")
    register_defaults: bool = Field(default=True, description="Register built-in servers and workflows")


# Validation functions


def validate_security_config(data: dict[str, Any]) -> SecurityConfig:
    """Validate security configuration data.

    Args:
        data: Raw configuration dictionary

    Returns:
        Validated SecurityConfig object

    Raises:
        ValidationError: If the configuration is invalid
    """
    return SecurityConfig.model_validate(data)


def validate_servers_config(data: dict[str, Any] | list[Any]) -> list[ServerConfig]:
    """Validate server configuration data.

    Accepts either a list of server entries or a mapping of name to entry.

    Args:
        data: Raw configuration data

    Returns:
        List of validated ServerConfig objects

    Raises:
        ValidationError: If the configuration is invalid
    """
    if isinstance(data, dict):
        return [ServerConfig.model_validate({"name": name, **(entry or {})}) for name, entry in data.items()]
    return [ServerConfig.model_validate(entry) for entry in data]


def validate_workflow_config(data: dict[str, Any]) -> WorkflowConfig:
    """Validate workflow configuration data.

    Args:
        data: Raw configuration dictionary

    Returns:
        Validated WorkflowConfig object

    Raises:
        ValidationError: If the configuration is invalid
    """
    return WorkflowConfig.model_validate(data)
