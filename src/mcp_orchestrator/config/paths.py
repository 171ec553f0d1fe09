"""Path utilities for orchestrator configuration.

This module provides utilities for detecting and managing configuration paths.
"""

import os
from pathlib import Path

CONFIG_DIR_ENV = "MCP_ORCHESTRATOR_HOME"


def get_default_config_dir() -> Path:
    """Get the default configuration directory path.

    Returns ``$MCP_ORCHESTRATOR_HOME`` if set, otherwise ~/.mcp-orchestrator/.
    The directory is not created.

    Returns:
        Path to the default configuration directory
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".mcp-orchestrator"


def get_servers_file(config_dir: Path | None = None) -> Path | None:
    """Find the servers configuration file.

    Args:
        config_dir: Base configuration directory (default: ~/.mcp-orchestrator/)

    Returns:
        Path to servers.yaml/.yml/.json, or None if none exists
    """
    if config_dir is None:
        config_dir = get_default_config_dir()

    for ext in (".yaml", ".yml", ".json"):
        path = config_dir / f"servers{ext}"
        if path.exists():
            return path
    return None


def get_workflows_dir(config_dir: Path | None = None) -> Path:
    """Get the workflows configuration directory.

    Args:
        config_dir: Base configuration directory (default: ~/.mcp-orchestrator/)

    Returns:
        Path to the workflows directory (may not exist)
    """
    if config_dir is None:
        config_dir = get_default_config_dir()
    return config_dir / "workflows"


def get_env_file(config_dir: Path | None = None) -> Path:
    """Get the ``.env`` file inside the configuration directory."""
    if config_dir is None:
        config_dir = get_default_config_dir()
    return config_dir / ".env"
