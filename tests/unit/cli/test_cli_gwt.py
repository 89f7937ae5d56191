"""
GWT Tests for the catalogmesh CLI.
"""

from unittest.mock import patch

import pytest
import respx
from httpx import Response
from typer.testing import CliRunner

from catalogmesh.cli.main import app

runner = CliRunner()


@pytest.fixture
def patched_services(services):
    with patch("catalogmesh.cli.main.get_services", return_value=services), patch(
        "catalogmesh.cli.peers.get_services", return_value=services
    ):
        yield services


# =============================================================================
# SCENARIO: Peer management
# =============================================================================


def test_peers_list_given_known_peer_when_listed_then_table_shows_url(
    patched_services, add_peer
):
    # Given
    add_peer("a.org", title="Alpha")

    # When
    result = runner.invoke(app, ["peers", "list"])

    # Then
    assert result.exit_code == 0
    assert "Alpha" in result.output


def test_peers_add_given_no_sync_when_added_then_recorded_without_contact(
    patched_services, store
):
    result = runner.invoke(
        app, ["peers", "add", "https://b.org/api/directory", "--no-sync"]
    )

    assert result.exit_code == 0
    assert store.find_by_directory_url("https://b.org/api/directory") is not None


def test_peers_remove_given_unknown_id_when_removed_then_exit_1(patched_services):
    result = runner.invoke(app, ["peers", "remove", "missing"])
    assert result.exit_code == 1


def test_peers_remove_given_known_id_when_removed_then_deleted(
    patched_services, store, add_peer
):
    peer = add_peer("a.org")

    result = runner.invoke(app, ["peers", "remove", peer.id])

    assert result.exit_code == 0
    assert store.count() == 0


def test_peers_default_given_opted_out_peer_when_on_then_flag_set(
    patched_services, store, add_peer
):
    # Given
    peer = add_peer("a.org", is_default=False)

    # When
    result = runner.invoke(app, ["peers", "default", peer.id, "--on"])

    # Then
    assert result.exit_code == 0
    assert store.find_by_id(peer.id).is_default is True


def test_peers_default_given_default_peer_when_off_then_flag_cleared(
    patched_services, store, add_peer
):
    peer = add_peer("a.org")

    result = runner.invoke(app, ["peers", "default", peer.id, "--off"])

    assert result.exit_code == 0
    assert store.find_by_id(peer.id).is_default is False


def test_peers_default_given_unknown_id_when_set_then_exit_1(patched_services):
    result = runner.invoke(app, ["peers", "default", "missing", "--on"])
    assert result.exit_code == 1


# =============================================================================
# SCENARIO: Engine commands
# =============================================================================


def test_sync_given_failing_peer_when_run_then_exit_0_and_failure_reported(
    patched_services, add_peer
):
    # Given
    add_peer("down.org")

    with respx.mock() as respx_mock:
        respx_mock.get("https://down.org/api/directory").mock(return_value=Response(500))

        # When
        result = runner.invoke(app, ["sync"])

    # Then
    assert result.exit_code == 0
    assert "failed=1" in result.output


def test_broadcast_given_missing_identity_when_run_then_error_with_hint(
    patched_services,
):
    # Given
    patched_services.config.federation.directory_url = ""

    # When
    result = runner.invoke(app, ["broadcast"])

    # Then
    assert result.exit_code == 1
    assert "CM-CFG-001" in result.output


def test_publications_given_no_peers_when_run_json_then_prints_empty_result(
    patched_services,
):
    result = runner.invoke(app, ["publications", "--json"])

    assert result.exit_code == 0
    assert '"total": 0' in result.output
