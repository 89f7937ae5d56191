"""
GWT Unit Tests for the broadcast engine.
"""

import asyncio
import json
from unittest.mock import MagicMock

import httpx
import pytest
import respx
from httpx import Response

from catalogmesh.core.exceptions import StoreFailure
from catalogmesh.core.federation.broadcast import BroadcastEngine
from catalogmesh.storage.peer_store import PeerRecordStore

SELF_URL = "https://self.example.org/api/directory"


def _dir(host: str) -> str:
    return f"https://{host}/api/directory"


@pytest.fixture
def broadcaster(store, client, federation_config) -> BroadcastEngine:
    return BroadcastEngine(store, client, federation_config)


# =============================================================================
# GIVEN: Several known peers
# =============================================================================


@pytest.mark.asyncio
async def test_broadcast_given_all_peers_when_run_then_announcement_posted_to_each(
    broadcaster, add_peer
):
    # Given
    add_peer("a.org")
    add_peer("b.org")

    with respx.mock() as respx_mock:
        route_a = respx_mock.post(_dir("a.org")).mock(return_value=Response(200))
        route_b = respx_mock.post(_dir("b.org")).mock(return_value=Response(201))

        # When
        report = await broadcaster.run()

    # Then
    assert report.targets == 2
    assert report.succeeded == 2
    body = json.loads(route_a.calls.last.request.content)
    assert body["directoryUrl"] == SELF_URL
    assert body["title"] == "Self Catalog"
    assert body["catalogIds"] == ["cat-1"]
    assert route_b.call_count == 1


@pytest.mark.asyncio
async def test_broadcast_given_failing_peers_when_run_then_rest_still_announced(
    broadcaster, store, add_peer
):
    # Given
    down = add_peer("down.org")
    erroring = add_peer("error.org")
    up = add_peer("up.org")

    with respx.mock() as respx_mock:
        respx_mock.post(_dir("down.org")).mock(side_effect=httpx.ConnectError("refused"))
        respx_mock.post(_dir("error.org")).mock(return_value=Response(502))
        respx_mock.post(_dir("up.org")).mock(return_value=Response(200))

        # When
        report = await broadcaster.broadcast(None)

    # Then
    assert report.succeeded == 1
    assert report.failed == 2
    assert store.find_by_id(down.id).status_code == 500
    assert store.find_by_id(down.id).available is False
    assert store.find_by_id(erroring.id).status_code == 502
    assert store.find_by_id(up.id).available is True


@pytest.mark.asyncio
async def test_broadcast_given_first_peer_hangs_when_run_then_timed_out_and_rest_announced(
    broadcaster, store, add_peer
):
    # Given
    slow = add_peer("slow.org")
    up = add_peer("up.org")

    async def _hang(request):
        await asyncio.sleep(10)
        return Response(200)

    with respx.mock() as respx_mock:
        respx_mock.post(_dir("slow.org")).mock(side_effect=_hang)
        up_route = respx_mock.post(_dir("up.org")).mock(return_value=Response(200))

        # When
        report = await asyncio.wait_for(broadcaster.run(), timeout=5)

    # Then
    assert report.succeeded == 1
    assert report.failed == 1
    assert up_route.call_count == 1
    timed_out = next(o for o in report.outcomes if o.url == slow.directory_url)
    assert timed_out.error_type == "TIMEOUT"
    assert store.find_by_id(slow.id).available is False
    assert store.find_by_id(slow.id).status_code == 500
    assert store.find_by_id(up.id).available is True


@pytest.mark.asyncio
async def test_broadcast_given_self_record_in_store_when_run_then_self_skipped(
    broadcaster, store, add_peer
):
    # Given
    add_peer("self.example.org")
    add_peer("a.org")

    with respx.mock() as respx_mock:
        respx_mock.post(_dir("a.org")).mock(return_value=Response(200))

        # When
        report = await broadcaster.run()

    # Then
    assert report.targets == 1


# =============================================================================
# GIVEN: A single target URL
# =============================================================================


@pytest.mark.asyncio
async def test_broadcast_given_target_url_when_broadcast_then_only_target_contacted(
    broadcaster, add_peer
):
    # Given
    add_peer("a.org")

    with respx.mock() as respx_mock:
        route = respx_mock.post(_dir("new.org")).mock(return_value=Response(200))

        # When
        report = await broadcaster.broadcast(_dir("new.org"))

    # Then
    assert route.call_count == 1
    assert report.targets == 1
    assert report.outcomes[0].peer_id is None


@pytest.mark.asyncio
async def test_broadcast_given_own_url_as_target_when_broadcast_then_nothing_sent(
    broadcaster,
):
    report = await broadcaster.broadcast(SELF_URL)
    assert report.targets == 0


@pytest.mark.asyncio
async def test_broadcast_given_no_peers_when_run_then_empty_report(broadcaster):
    report = await broadcaster.run()
    assert (report.targets, report.succeeded, report.failed) == (0, 0, 0)


# =============================================================================
# GIVEN: Store failures
# =============================================================================


@pytest.mark.asyncio
async def test_broadcast_given_unreadable_store_when_run_then_raises(
    client, federation_config
):
    # Given
    broken = MagicMock(spec=PeerRecordStore)
    broken.find_all.side_effect = StoreFailure("store offline")
    broadcaster = BroadcastEngine(broken, client, federation_config)

    # When / Then
    with pytest.raises(StoreFailure):
        await broadcaster.run()


@pytest.mark.asyncio
async def test_broadcast_given_status_write_fails_when_run_then_not_raised(
    client, federation_config, add_peer, store
):
    # Given
    peer = add_peer("a.org")
    flaky = MagicMock(spec=PeerRecordStore)
    flaky.find_all.return_value = [peer]
    flaky.update_status.side_effect = StoreFailure("write failed")
    broadcaster = BroadcastEngine(flaky, client, federation_config)

    with respx.mock() as respx_mock:
        respx_mock.post(_dir("a.org")).mock(return_value=Response(200))

        # When
        report = await broadcaster.run()

    # Then
    assert report.succeeded == 1
