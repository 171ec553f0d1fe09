"""Configuration management for the orchestration engine."""

from .defaults import DEFAULT_SERVERS, SERVER_KEY_ENV_VARS, default_workflows
from .loader import (
    load_config_file,
    load_security_config_from_env,
    load_servers_config,
    load_settings,
    load_workflow_config,
    load_workflows_dir,
)
from .paths import get_default_config_dir, get_env_file, get_servers_file, get_workflows_dir
from .schemas import ClientRateLimitConfig, ClientSettings, OrchestratorSettings, SecurityConfig

__all__ = [
    # Loader
    "load_config_file",
    "load_servers_config",
    "load_workflow_config",
    "load_workflows_dir",
    "load_security_config_from_env",
    "load_settings",
    # Paths
    "get_default_config_dir",
    "get_servers_file",
    "get_workflows_dir",
    "get_env_file",
    # Schemas
    "SecurityConfig",
    "ClientRateLimitConfig",
    "ClientSettings",
    "OrchestratorSettings",
    # Defaults
    "DEFAULT_SERVERS",
    "SERVER_KEY_ENV_VARS",
    "default_workflows",
]
