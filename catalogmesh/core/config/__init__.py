"""
Configuration Management for catalogmesh.

    from catalogmesh.core.config import Config, load_config

    config = load_config()
    timeout = config.federation.timeout_seconds
"""

from catalogmesh.core.config.base import APIConfig, ProjectConfig
from catalogmesh.core.config.config import Config
from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.config_loaders import expand_env_vars, load_config

__all__ = [
    "APIConfig",
    "Config",
    "FederationConfig",
    "ProjectConfig",
    "expand_env_vars",
    "load_config",
]
