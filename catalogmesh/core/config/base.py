"""
Base configuration classes for project and API server settings.
"""

from dataclasses import dataclass, field
from typing import List


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    name: str = "catalogmesh"
    data_dir: str = ".data"
    store_backend: str = "json"  # json, memory


@dataclass
class APIConfig:
    """HTTP API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    run_scheduler: bool = False  # start sync/broadcast jobs inside the API process
