"""
Shared pytest fixtures for catalogmesh tests.

Fixture Organization
--------------------
- **federation_config**: Identity and HTTP limits of the local instance
- **store**: In-memory PeerRecordStore
- **client**: FetchClient with short timeouts
- **add_peer**: Factory that stores a PeerRecord and returns it
- **services**: Fully wired FederationServices over the in-memory store
"""

from pathlib import Path
from typing import Callable, Optional

import pytest

from catalogmesh.core.config import Config, FederationConfig
from catalogmesh.core.config.base import ProjectConfig
from catalogmesh.core.federation.services import FederationServices
from catalogmesh.core.models.peer import PeerRecord
from catalogmesh.core.network.fetch_client import FetchClient
from catalogmesh.storage.peer_store import PeerRecordStore

SELF_URL = "https://self.example.org/api/directory"


@pytest.fixture
def federation_config() -> FederationConfig:
    return FederationConfig(
        directory_url=SELF_URL,
        title="Self Catalog",
        summary="The local instance",
        catalog_ids=["cat-1"],
        publications_endpoint="https://self.example.org/api/publications",
        search_url="https://self.example.org/api/search",
        timeout_seconds=1.0,
        connect_timeout_seconds=0.5,
        aggregation_grace_seconds=0.5,
    )


@pytest.fixture
def store() -> PeerRecordStore:
    return PeerRecordStore()


@pytest.fixture
def client(federation_config: FederationConfig) -> FetchClient:
    return FetchClient.from_config(federation_config)


@pytest.fixture
def add_peer(store: PeerRecordStore) -> Callable[..., PeerRecord]:
    """Store a peer for ``host`` with directory and publications endpoints."""

    def _add(
        host: str,
        title: Optional[str] = None,
        publications: bool = True,
        is_default: bool = True,
    ) -> PeerRecord:
        record = PeerRecord(
            directory_url=f"https://{host}/api/directory",
            title=title or host,
            publications_endpoint=(
                f"https://{host}/api/publications" if publications else None
            ),
            is_default=is_default,
        )
        return store.upsert(record)

    return _add


@pytest.fixture
def config(tmp_path: Path, federation_config: FederationConfig) -> Config:
    return Config(
        project=ProjectConfig(data_dir="data", store_backend="memory"),
        federation=federation_config,
        _base_path=tmp_path,
    )


@pytest.fixture
def services(config: Config, store: PeerRecordStore) -> FederationServices:
    return FederationServices.from_config(config, store=store)
