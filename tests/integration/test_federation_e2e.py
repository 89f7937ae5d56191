"""
Integration Tests for the directory federation lifecycle.

Two in-process instances (A and B) talk over mocked HTTP: B's directory and
publication endpoints are served by B's own services, so discovery,
announcement and aggregation run through real engines and JSON-file stores.
"""

import json
from pathlib import Path

import pytest
import respx
from fastapi.testclient import TestClient
from httpx import Response

from catalogmesh.api.main import create_app
from catalogmesh.core.config import Config, FederationConfig
from catalogmesh.core.config.base import ProjectConfig
from catalogmesh.core.federation.services import FederationServices

A_URL = "https://a.example.org/api/directory"
B_URL = "https://b.example.org/api/directory"
C_URL = "https://c.example.org/api/directory"
B_PUBS = "https://b.example.org/api/publications"


def _instance(tmp_path: Path, name: str, directory_url: str, pubs: str) -> FederationServices:
    config = Config(
        project=ProjectConfig(data_dir=f"data-{name}", store_backend="json"),
        federation=FederationConfig(
            directory_url=directory_url,
            title=f"Instance {name.upper()}",
            publications_endpoint=pubs,
            timeout_seconds=1.0,
            connect_timeout_seconds=0.5,
        ),
        _base_path=tmp_path,
    )
    config.ensure_directories()
    return FederationServices.from_config(config)


@pytest.fixture
def instance_a(tmp_path) -> FederationServices:
    return _instance(tmp_path, "a", A_URL, "https://a.example.org/api/publications")


@pytest.fixture
def instance_b(tmp_path) -> FederationServices:
    return _instance(tmp_path, "b", B_URL, B_PUBS)


def _serve_b(respx_mock, instance_b: FederationServices) -> None:
    """Route B's public endpoints to B's services."""

    def _directory_get(request):
        return Response(200, json=instance_b.directory.get_directory())

    def _directory_post(request):
        result = instance_b.directory.register(json.loads(request.content))
        return Response(201 if result.created else 200, json={"created": result.created})

    respx_mock.get(B_URL).mock(side_effect=_directory_get)
    respx_mock.post(B_URL).mock(side_effect=_directory_post)
    respx_mock.get(B_PUBS).mock(
        return_value=Response(200, json={"results": [{"id": "b-1", "title": "Rivers"}]})
    )


# =============================================================================
# GIVEN: A knows B, B knows C (unreachable)
# =============================================================================


@pytest.mark.integration
@pytest.mark.asyncio
async def test_e2e_given_seed_peer_when_sync_cycle_then_discovers_announces_and_aggregates(
    instance_a, instance_b
):
    # Given
    registered = instance_a.directory.register(
        {"directoryUrl": B_URL, "publicationsEndpoint": B_PUBS}
    )
    instance_a.store.set_default(registered.record.id, True)
    instance_b.directory.register({"directoryUrl": C_URL, "title": "C"})

    with respx.mock(assert_all_called=False) as respx_mock:
        _serve_b(respx_mock, instance_b)
        c_post = respx_mock.post(C_URL).mock(return_value=Response(503))

        # When
        report = await instance_a.sync.run()
        result = await instance_a.aggregation.get_publications()

    # Then: C discovered through B, A not re-learned from B's listing of itself
    assert report.contacted == 1
    assert report.added == 1
    assert instance_a.store.find_by_directory_url(C_URL) is not None
    assert instance_a.store.find_by_directory_url(A_URL) is None
    assert c_post.call_count == 1
    assert report.registration_failures == 1

    # Then: B's record is refreshed and its publications are aggregated
    b_record = instance_a.store.find_by_directory_url(B_URL)
    assert b_record.available is True
    assert b_record.last_sync is not None
    assert result.total == 1
    assert result.results[0]["_source"]["endpoint"] == B_PUBS


@pytest.mark.integration
@pytest.mark.asyncio
async def test_e2e_given_broadcast_when_peer_receives_announcement_then_peer_records_us(
    instance_a, instance_b
):
    # Given
    instance_a.directory.register({"directoryUrl": B_URL})

    with respx.mock(assert_all_called=False) as respx_mock:
        _serve_b(respx_mock, instance_b)

        # When
        report = await instance_a.broadcast.run()

    # Then
    assert report.succeeded == 1
    recorded = instance_b.store.find_by_directory_url(A_URL)
    assert recorded is not None
    assert recorded.title == "Instance A"
    assert recorded.publications_endpoint == "https://a.example.org/api/publications"


@pytest.mark.integration
def test_e2e_given_persisted_store_when_api_restarted_then_directory_served(
    instance_a, tmp_path
):
    # Given
    instance_a.directory.register({"directoryUrl": B_URL, "title": "B"})
    reloaded = FederationServices.from_config(instance_a.config)
    api = TestClient(create_app(instance_a.config, services=reloaded))

    # When
    response = api.get("/api/directory")

    # Then
    urls = [entry["directoryUrl"] for entry in response.json()["results"]]
    assert urls == [A_URL, B_URL]
    assert (tmp_path / "data-a" / "peers.json").exists()
