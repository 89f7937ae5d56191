"""
Configuration Loading Functions.

Handles loading config.yaml, ${VAR} expansion and CATALOGMESH_* environment
overrides.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment overrides
---------------------
    CATALOGMESH_DATA_PATH          project.data_dir
    CATALOGMESH_DIRECTORY_URL      federation.directory_url
    CATALOGMESH_TITLE              federation.title
    CATALOGMESH_TIMEOUT            federation.timeout_seconds (0.1 - 120)
    CATALOGMESH_CONNECT_TIMEOUT    federation.connect_timeout_seconds (0.1 - 60)
    CATALOGMESH_API_PORT           api.port (1 - 65535)
"""

import os
import re
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from catalogmesh.core.config import Config


class _Logger:
    """Lazy logger holder (avoids importing rich at config import time)."""

    _instance = None

    @classmethod
    def get(cls) -> Any:
        if cls._instance is None:
            from catalogmesh.core.logging import get_logger

            cls._instance = get_logger(__name__)
        return cls._instance


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:default} in config values.

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def get_env_float(
    name: str, min_value: float, max_value: float
) -> Optional[float]:
    """Read a float from the environment, clamped to bounds; None if unset/invalid."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        _Logger.get().warning("Ignoring invalid float override", variable=name, value=raw)
        return None
    if value != value:
        return None
    return max(min_value, min(value, max_value))


def get_env_int(name: str, min_value: int, max_value: int) -> Optional[int]:
    """Read an int from the environment, clamped to bounds; None if unset/invalid."""
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        _Logger.get().warning("Ignoring invalid integer override", variable=name, value=raw)
        return None
    return max(min_value, min(value, max_value))


def _apply_env_overrides(config: "Config") -> "Config":
    """Apply CATALOGMESH_* environment overrides (env wins over the file)."""
    data_path = os.environ.get("CATALOGMESH_DATA_PATH")
    if data_path:
        config.project.data_dir = data_path

    directory_url = os.environ.get("CATALOGMESH_DIRECTORY_URL")
    if directory_url:
        config.federation.directory_url = directory_url.strip()

    title = os.environ.get("CATALOGMESH_TITLE")
    if title:
        config.federation.title = title

    timeout = get_env_float("CATALOGMESH_TIMEOUT", 0.1, 120.0)
    if timeout is not None:
        config.federation.timeout_seconds = timeout

    connect_timeout = get_env_float("CATALOGMESH_CONNECT_TIMEOUT", 0.1, 60.0)
    if connect_timeout is not None:
        config.federation.connect_timeout_seconds = connect_timeout

    api_port = get_env_int("CATALOGMESH_API_PORT", 1, 65535)
    if api_port is not None:
        config.api.port = api_port

    return config


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. Defaults to config.yaml in base_path.
        base_path: Base path for the project. Defaults to current directory.

    Returns:
        Config object with all settings.
    """
    from catalogmesh.core.config import Config

    base_path = base_path or Path.cwd()

    if config_path is None:
        for filename in ["config.yaml", "catalogmesh.yaml"]:
            candidate = base_path / filename
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None or not config_path.exists():
        config = Config()
        config._base_path = base_path
        return _apply_env_overrides(config)

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    config = Config.from_dict(data, base_path)
    _Logger.get().debug("Configuration loaded", path=config_path)
    return _apply_env_overrides(config)

