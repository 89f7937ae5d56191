"""
Federation Configuration Models.

Identity of this instance (what it announces to peers) plus the HTTP and
scheduling limits used by the directory engines.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from catalogmesh.core.exceptions import ConfigurationError
from catalogmesh.core.models.peer import normalize_directory_url

DEFAULT_TIMEOUT_SEC = 5.0
DEFAULT_CONNECT_TIMEOUT_SEC = 2.0
DEFAULT_DIRECTORY_FALLBACK_PATH = "/api/directory"


class FederationConfig(BaseModel):
    """
    Configuration for directory federation.
    """

    # Self-announcement (what peers store about us)
    directory_url: str = Field(
        default="", description="Absolute URL of this instance's directory endpoint"
    )
    title: str = Field(default="", description="Human-readable instance name")
    summary: str = Field(default="")
    description: str = Field(default="")
    catalog_ids: List[str] = Field(default_factory=list)
    publications_endpoint: Optional[str] = Field(
        None, description="Publication listing URL advertised to peers"
    )
    search_url: Optional[str] = Field(None, description="Search endpoint URL")

    # Outbound HTTP
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SEC, gt=0, le=120)
    connect_timeout_seconds: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT_SEC, gt=0, le=60
    )
    headers: Dict[str, str] = Field(default_factory=dict)
    max_concurrency: int = Field(default=10, ge=1, le=100)
    aggregation_grace_seconds: float = Field(default=1.0, ge=0, le=30)
    directory_fallback_path: Optional[str] = Field(
        default=DEFAULT_DIRECTORY_FALLBACK_PATH,
        description="Retried once when a directory URL answers with non-JSON",
    )

    # Scheduling
    sync_interval_seconds: int = Field(default=3600, ge=60)
    broadcast_interval_seconds: int = Field(default=14400, ge=60)

    @field_validator("directory_url")
    @classmethod
    def _strip_directory_url(cls, value: str) -> str:
        return value.strip()

    @property
    def normalized_directory_url(self) -> str:
        """Own directory URL in the form used for dedup comparisons."""
        return normalize_directory_url(self.directory_url)

    def is_self(self, url: Optional[str]) -> bool:
        """True when ``url`` points at this instance's own directory."""
        if not url or not self.directory_url:
            return False
        return normalize_directory_url(url) == self.normalized_directory_url

    def require_identity(self) -> None:
        """Raise ConfigurationError when the self-announcement cannot be built."""
        if not self.directory_url:
            raise ConfigurationError("federation.directory_url is not configured")
        if not self.directory_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"federation.directory_url must be an absolute http(s) URL: "
                f"{self.directory_url}"
            )

    def aggregation_ceiling(self, timeout: Optional[float] = None) -> float:
        """Overall wall-clock budget for one federated request.

        ``timeout`` replaces the configured per-call timeout when given.
        """
        return (timeout or self.timeout_seconds) + self.aggregation_grace_seconds
