"""
Federated Aggregation Engine.

Answers a federated publication request by querying every eligible peer
concurrently and merging what comes back. A failing peer contributes an
error entry, never partial data, and never fails the request.

Eligible peers are default peers with a non-empty publications endpoint.
Each call has its own timeout; the whole request is additionally bounded by
an overall ceiling, after which outstanding calls are cancelled and reported
as timeouts.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.exceptions import StoreFailure
from catalogmesh.core.logging import get_logger
from catalogmesh.core.models.aggregate import (
    AggregateError,
    AggregateResult,
    AggregateStatistics,
    PublicationLookup,
    SourceInfo,
)
from catalogmesh.core.models.peer import PeerRecord
from catalogmesh.core.models.peer_error import PeerErrorType
from catalogmesh.core.network.fetch_client import FetchClient, FetchResult
from catalogmesh.core.system import federation_metrics
from catalogmesh.storage.peer_store import PeerRecordStore

logger = get_logger(__name__)

# Fixed upper bound on items taken from one peer response
MAX_RESULTS_PER_PEER = 1000


@dataclass
class ClientOverrides:
    """Per-request HTTP overrides accepted by the aggregation calls."""

    timeout: Optional[float] = None
    connect_timeout: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)
    # (key, value) pairs so a key may repeat
    params: List[Tuple[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClientOverrides":
        if not data:
            return cls()
        timeout = data.get("timeout")
        connect_timeout = data.get("connect_timeout")
        params = data.get("params") or data.get("query") or []
        if isinstance(params, dict):
            params = params.items()
        return cls(
            timeout=float(timeout) if timeout else None,
            connect_timeout=float(connect_timeout) if connect_timeout else None,
            headers=dict(data.get("headers") or {}),
            params=[(str(k), v) for k, v in params],
        )


PeerCall = Tuple[PeerRecord, FetchResult]


class AggregationEngine:
    """
    Fans a publication request out to eligible peers.
    """

    def __init__(
        self, store: PeerRecordStore, client: FetchClient, config: FederationConfig
    ) -> None:
        self.store = store
        self.client = client
        self.config = config

    def eligible_peers(self) -> List[PeerRecord]:
        """Default peers with a publications endpoint, in store order."""
        return [
            p
            for p in self.store.find_all({"is_default": True})
            if p.is_aggregatable and not self.config.is_self(p.directory_url)
        ]

    async def get_publications(
        self, client_config: Optional[Dict[str, Any]] = None
    ) -> AggregateResult:
        """
        Aggregate publications from all eligible peers.

        Args:
            client_config: Optional ``timeout``, ``connect_timeout``,
                ``headers`` and ``params`` (query string) overrides

        Returns:
            AggregateResult with results, per-peer errors and statistics

        Raises:
            StoreFailure: peer list could not be read
        """
        overrides = ClientOverrides.from_dict(client_config)
        peers = self.eligible_peers()
        if not peers:
            logger.debug("No eligible peers for aggregation")
            return AggregateResult()

        with federation_metrics.get_aggregation_timer():
            calls = await self._fan_out(
                peers, lambda p: p.publications_endpoint, overrides
            )

        result = AggregateResult(
            statistics=AggregateStatistics(total_endpoints=len(peers))
        )
        for peer, fetched in calls:
            self._collect(peer, fetched, result)
            self._record_status(peer, fetched)

        result.total = len(result.results)
        result.statistics.total_publications = result.total
        logger.info(
            "Federated publications aggregated",
            endpoints=result.statistics.total_endpoints,
            failed=result.statistics.failed_calls,
            total=result.total,
        )
        return result

    async def get_publication(
        self, publication_id: str, client_config: Optional[Dict[str, Any]] = None
    ) -> PublicationLookup:
        """
        Look up one publication on every eligible peer.

        Returns the first hit in peer order with its provenance, or no
        publication with the per-peer errors.
        """
        overrides = ClientOverrides.from_dict(client_config)
        peers = self.eligible_peers()
        lookup = PublicationLookup()
        if not peers:
            return lookup

        quoted = quote(str(publication_id), safe="")
        calls = await self._fan_out(
            peers,
            lambda p: f"{p.publications_endpoint.rstrip('/')}/{quoted}",
            overrides,
        )

        for peer, fetched in calls:
            if fetched.ok and isinstance(fetched.body, dict):
                if lookup.publication is None:
                    source = self._source(peer)
                    publication = dict(fetched.body)
                    publication["_source"] = source.model_dump()
                    lookup.publication = publication
                    lookup.source = source
                continue
            if fetched.ok:
                fetched = self._malformed(fetched, "Publication body is not an object")
            lookup.errors.append(self._error(peer, fetched))
        return lookup

    async def _fan_out(
        self, peers: List[PeerRecord], url_for: Any, overrides: ClientOverrides
    ) -> List[PeerCall]:
        """One GET per peer; calls still running at the ceiling are cancelled."""
        tasks = [
            asyncio.ensure_future(
                self.client.get(
                    url_for(peer),
                    params=overrides.params or None,
                    headers=overrides.headers or None,
                    timeout=overrides.timeout,
                    connect_timeout=overrides.connect_timeout,
                )
            )
            for peer in peers
        ]
        ceiling = self.config.aggregation_ceiling(overrides.timeout)
        _, pending = await asyncio.wait(tasks, timeout=ceiling)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        calls: List[PeerCall] = []
        for peer, task in zip(peers, tasks):
            url = url_for(peer)
            if task in pending:
                fetched = FetchResult.fail(
                    url,
                    PeerErrorType.TIMEOUT,
                    f"Request exceeded the {ceiling:.1f}s aggregation ceiling",
                )
            elif task.exception() is not None:
                logger.error(
                    "Peer call crashed", peer=peer.directory_url, error=str(task.exception())
                )
                fetched = FetchResult.fail(
                    url, PeerErrorType.CONNECTION_ERROR, str(task.exception())
                )
            else:
                fetched = task.result()
            calls.append((peer, fetched))
        return calls

    def _collect(self, peer: PeerRecord, fetched: FetchResult, result: AggregateResult) -> None:
        items = None
        if fetched.ok and isinstance(fetched.body, dict):
            items = fetched.body.get("results")
        if fetched.ok and not isinstance(items, list):
            fetched = self._malformed(fetched, "Publication body has no results list")

        source = self._source(peer)
        result.sources.append(source)
        if not fetched.ok:
            result.statistics.failed_calls += 1
            result.errors.append(self._error(peer, fetched))
            logger.warning(
                "Federated call failed",
                peer=peer.directory_url,
                error_type=fetched.failure.error_type,
            )
            return

        stamp = source.model_dump()
        if len(items) > MAX_RESULTS_PER_PEER:
            dropped = len(items) - MAX_RESULTS_PER_PEER
            result.statistics.truncated_results += dropped
            logger.warning(
                "Peer response truncated",
                peer=peer.directory_url,
                kept=MAX_RESULTS_PER_PEER,
                dropped=dropped,
            )
        for item in items[:MAX_RESULTS_PER_PEER]:
            if not isinstance(item, dict):
                continue
            tagged = dict(item)
            tagged["_source"] = dict(stamp)
            result.results.append(tagged)
        result.statistics.successful_calls += 1

    def _record_status(self, peer: PeerRecord, fetched: FetchResult) -> None:
        federation_metrics.track_contact("aggregation", fetched.ok)
        if not peer.id:
            return
        try:
            self.store.update_status(peer.id, fetched.recorded_status, fetched.ok)
        except StoreFailure as e:
            logger.error("Failed to record peer status", peer=peer.directory_url, error=str(e))

    @staticmethod
    def _source(peer: PeerRecord) -> SourceInfo:
        return SourceInfo(
            endpoint=peer.publications_endpoint or "",
            listing_id=peer.id,
            listing_title=peer.title,
        )

    @staticmethod
    def _malformed(fetched: FetchResult, message: str) -> FetchResult:
        return FetchResult.fail(
            fetched.url,
            PeerErrorType.MALFORMED_BODY,
            message,
            status_code=fetched.status_code,
        )

    @staticmethod
    def _error(peer: PeerRecord, fetched: FetchResult) -> AggregateError:
        failure = fetched.failure
        return AggregateError(
            listing_id=peer.id,
            listing_title=peer.title,
            endpoint=peer.publications_endpoint or fetched.url,
            error_type=failure.error_type,
            status_code=failure.status_code,
            message=failure.message,
        )
