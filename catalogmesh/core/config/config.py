"""
Main configuration class for catalogmesh.

Configuration Hierarchy
-----------------------
    Config
    ├── ProjectConfig      # Name, data directory, store backend
    ├── APIConfig          # HTTP server bind address
    └── FederationConfig   # Instance identity, timeouts, schedule

Environment Variables
---------------------
Deployment-specific values use ${VAR_NAME} syntax in config.yaml:

    federation:
      directory_url: ${CATALOGMESH_DIRECTORY_URL}
      timeout_seconds: ${CATALOGMESH_TIMEOUT:5}

Usage Example
-------------
    config = load_config()
    config.federation.require_identity()
    store_path = config.peers_path
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from catalogmesh.core.config.base import APIConfig, ProjectConfig
from catalogmesh.core.config.federation import FederationConfig

STORE_BACKENDS = frozenset(["json", "memory"])


@dataclass
class Config:
    """Main catalogmesh configuration."""

    project: ProjectConfig = field(default_factory=ProjectConfig)
    api: APIConfig = field(default_factory=APIConfig)
    federation: FederationConfig = field(default_factory=FederationConfig)

    _base_path: Path = field(default_factory=Path.cwd, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        assert isinstance(self.project, ProjectConfig), "project must be ProjectConfig"
        assert isinstance(
            self.federation, FederationConfig
        ), "federation must be FederationConfig"

        assert self.project.data_dir not in (
            "/",
            "\\",
            "",
        ), f"data_dir must not be root or empty: {self.project.data_dir}"

        if self.project.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"project.store_backend must be one of {sorted(STORE_BACKENDS)}, "
                f"got: {self.project.store_backend}"
            )

    @property
    def data_path(self) -> Path:
        """Get absolute path to data directory."""
        return self._base_path / self.project.data_dir

    @property
    def peers_path(self) -> Path:
        """JSON file holding peer records."""
        return self.data_path / "peers.json"

    @property
    def scheduler_state_path(self) -> Path:
        """JSON file holding persisted scheduler flags."""
        return self.data_path / "scheduler_state.json"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_path.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_path: Optional[Path] = None
    ) -> "Config":
        """Create Config from dictionary."""
        from catalogmesh.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})

        config = cls(
            project=ProjectConfig(**cls._filter_fields(ProjectConfig, data.get("project"))),
            api=APIConfig(**cls._filter_fields(APIConfig, data.get("api"))),
            federation=cls._parse_federation_config(data),
        )

        if base_path:
            config._base_path = base_path

        return config

    @classmethod
    def _parse_federation_config(cls, data: Dict[str, Any]) -> FederationConfig:
        """Parse federation section; unknown keys are ignored."""
        federation_data = data.get("federation") or {}
        known = set(FederationConfig.model_fields)
        filtered = {
            k: v
            for k, v in federation_data.items()
            if k in known and v not in (None, "")
        }
        return FederationConfig(**filtered)
