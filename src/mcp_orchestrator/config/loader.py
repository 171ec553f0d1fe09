"""Configuration loader for the orchestration engine.

This module provides functionality for loading YAML and JSON configurations
with environment variable expansion support.
"""

import json
import os
import re
import secrets
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic.alias_generators import to_camel

from ..models import ServerConfig, WorkflowConfig
from .defaults import SERVER_KEY_ENV_VARS
from .paths import get_default_config_dir, get_env_file, get_servers_file, get_workflows_dir
from .schemas import (
    ClientSettings,
    OrchestratorSettings,
    SecurityConfig,
    validate_servers_config,
    validate_workflow_config,
)

# ${VAR_NAME} or ${VAR_NAME:-default}; upper-case names only so that workflow
# placeholders such as ${metadata.projectId} are left alone
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

PRODUCTION_ENVS = {"production", "prod"}


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in a value.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: The value to expand (can be str, dict, list)

    Returns:
        The value with environment variables expanded
    """
    if isinstance(value, str):

        def replace_env_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default)

        return ENV_VAR_PATTERN.sub(replace_env_var, value)

    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def load_yaml_file(file_path: str | Path) -> Any:
    """Load a YAML file.

    Args:
        file_path: Path to the YAML file

    Returns:
        Parsed YAML contents (empty dict for an empty file)

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is not valid YAML
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config_file(
    file_path: str | Path,
    config_type: str = "auto",
    expand_env: bool = True,
) -> Any:
    """Load a configuration file (YAML or JSON) with optional environment variable expansion.

    Args:
        file_path: Path to the configuration file
        config_type: Type of config ("yaml", "json", or "auto" to detect from extension)
        expand_env: Whether to expand environment variables

    Returns:
        The parsed configuration

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file type is unsupported or invalid
    """
    path = Path(file_path)

    if config_type == "auto":
        suffix = path.suffix.lower()
        if suffix in [".yaml", ".yml"]:
            config_type = "yaml"
        elif suffix == ".json":
            config_type = "json"
        else:
            raise ValueError(f"Cannot detect config type from extension: {suffix}")

    if config_type == "yaml":
        config = load_yaml_file(path)
    elif config_type == "json":
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
    else:
        raise ValueError(f"Unsupported config type: {config_type}")

    if expand_env:
        config = _expand_env_vars(config)

    return config


def load_servers_config(file_path: str | Path) -> list[ServerConfig]:
    """Load and validate server configurations.

    The file holds either a list of servers or a mapping of name to server,
    optionally wrapped in a top-level ``servers`` key.

    Args:
        file_path: Path to the servers config file

    Returns:
        Validated ServerConfig objects

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the configuration is invalid
    """
    config_data = load_config_file(file_path)

    if isinstance(config_data, dict) and "servers" in config_data:
        config_data = config_data["servers"]

    return validate_servers_config(config_data or [])


def load_workflow_config(file_path: str | Path) -> WorkflowConfig:
    """Load and validate a workflow configuration file.

    Args:
        file_path: Path to the workflow configuration file

    Returns:
        Validated WorkflowConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the configuration is invalid
    """
    config_data = load_config_file(file_path)
    return validate_workflow_config(config_data)


def load_workflows_dir(workflows_dir: str | Path) -> list[WorkflowConfig]:
    """Load every workflow file in a directory.

    Args:
        workflows_dir: Directory holding ``*.yaml``, ``*.yml`` and ``*.json`` files

    Returns:
        Validated workflows sorted by file name (empty if the directory is missing)
    """
    directory = Path(workflows_dir)
    if not directory.is_dir():
        return []

    files = sorted(
        path for path in directory.iterdir() if path.is_file() and path.suffix.lower() in (".yaml", ".yml", ".json")
    )
    return [load_workflow_config(path) for path in files]


def load_security_config_from_env(environ: dict[str, str] | None = None) -> SecurityConfig:
    """Build the security configuration from environment variables.

    When no encryption key is provided a random one is generated, so
    encrypted values do not survive a restart.

    Args:
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Validated SecurityConfig object
    """
    env = os.environ if environ is None else environ

    api_keys = {server: env.get(var, "") for server, var in SERVER_KEY_ENV_VARS.items()}

    encryption_key = env.get("MCP_ENCRYPTION_KEY") or secrets.token_hex(32)

    origins_raw = env.get("ALLOWED_ORIGINS")
    allowed_origins = origins_raw.split(",") if origins_raw else ["*"]

    rate_limit: dict[str, Any] = {}
    if env.get("MCP_RATE_LIMIT_WINDOW"):
        rate_limit["window"] = float(env["MCP_RATE_LIMIT_WINDOW"])
    if env.get("MCP_RATE_LIMIT_MAX"):
        rate_limit["max_requests"] = int(env["MCP_RATE_LIMIT_MAX"])

    environment = (env.get("MCP_ENV") or env.get("NODE_ENV") or "").lower()

    return SecurityConfig(
        api_keys=api_keys,
        encryption_key=encryption_key,
        rate_limit=rate_limit,
        allowed_origins=allowed_origins,
        require_https=environment in PRODUCTION_ENVS,
    )


def load_settings(config_dir: str | Path | None = None, load_env: bool = True) -> OrchestratorSettings:
    """Load the full orchestrator configuration.

    Reads ``.env`` files (config directory, then working directory), builds
    the security config from the environment, then adds ``servers.yaml``,
    ``workflows/*`` and the optional ``settings.yaml`` from the config
    directory.

    Args:
        config_dir: Configuration directory (default: ~/.mcp-orchestrator/)
        load_env: Whether to load ``.env`` files

    Returns:
        Validated OrchestratorSettings object
    """
    directory = Path(config_dir) if config_dir is not None else get_default_config_dir()

    if load_env:
        env_file = get_env_file(directory)
        if env_file.exists():
            load_dotenv(env_file)
        load_dotenv()

    security = load_security_config_from_env()

    servers_file = get_servers_file(directory)
    servers = load_servers_config(servers_file) if servers_file else []
    workflows = load_workflows_dir(get_workflows_dir(directory))

    overrides: dict[str, Any] = {}
    for name in ("settings.yaml", "settings.yml", "settings.json"):
        path = directory / name
        if path.exists():
            overrides = load_config_file(path) or {}
            break

    client = ClientSettings.model_validate(overrides.get("client", {}))
    security_overrides = overrides.get("security")
    if security_overrides:
        security = SecurityConfig.model_validate(
            {**security.model_dump(by_alias=True), **{to_camel(k): v for k, v in security_overrides.items()}}
        )

    return OrchestratorSettings(
        servers=servers,
        workflows=workflows,
        security=security,
        client=client,
        swarm_platform=overrides.get("swarmPlatform", overrides.get("swarm_platform", "claude-flow")),
        register_defaults=overrides.get("registerDefaults", overrides.get("register_defaults", True)),
    )
