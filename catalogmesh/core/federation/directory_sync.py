"""
Directory Sync Engine.

Pulls every known peer's directory, records peers we have not seen yet and
announces this instance to them.

Cycle
-----
1. Load all known PeerRecords (availability ignored).
2. GET each peer directory concurrently (bounded), then merge sequentially
   in peer order so dedup across seeds is deterministic.
3. Record each contacted peer's status; ``last_sync`` advances on success.
4. POST the self-announcement to every peer discovered in this cycle.

A peer that fails is recorded and skipped. Only an unreadable store aborts
the cycle.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Optional, Set

from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.exceptions import (
    PeerNotFoundError,
    PeerProtocolError,
    StoreFailure,
)
from catalogmesh.core.federation.broadcast import BroadcastEngine
from catalogmesh.core.federation.directory import DirectoryService
from catalogmesh.core.logging import CycleLogger, get_logger
from catalogmesh.core.models.peer import DirectoryEntry, PeerRecord
from catalogmesh.core.models.peer_error import PeerErrorType
from catalogmesh.core.models.reports import PeerOutcome, SyncReport
from catalogmesh.core.network.fetch_client import FetchClient, FetchResult
from catalogmesh.core.system import federation_metrics
from catalogmesh.storage.peer_store import PeerRecordStore

logger = get_logger(__name__)

# Fixed upper bound on entries merged from one peer directory
MAX_ENTRIES_PER_DIRECTORY = 1000


class DirectorySyncEngine:
    """
    Gossip-style discovery over peer directories.
    """

    def __init__(
        self,
        store: PeerRecordStore,
        client: FetchClient,
        config: FederationConfig,
        broadcaster: Optional[BroadcastEngine] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.config = config
        self.broadcaster = broadcaster or BroadcastEngine(
            store, client, config, DirectoryService(config, store)
        )
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(config.max_concurrency)

    async def run(self) -> SyncReport:
        """
        Run one full sync cycle over every known peer.

        Raises:
            StoreFailure: peer list could not be read
            ConfigurationError: own identity is not configured
        """
        return await self._guarded("directory_sync", self._sync_all)

    async def do_cron_sync(self) -> SyncReport:
        """Scheduled entry point (alias of run)."""
        return await self.run()

    async def sync_directory(self, url: str) -> SyncReport:
        """
        Sync one directory URL on demand, adding it as a peer if unknown.

        Raises:
            PeerProtocolError: URL is empty or refers to this instance
        """
        url = (url or "").strip()
        if not url:
            raise PeerProtocolError("Directory URL must not be empty")
        if self.config.is_self(url):
            raise PeerProtocolError(
                f"Directory URL refers to this instance: {url}",
                why_it_happened="An instance cannot add itself as a peer",
            )

        async def _sync_one(report: SyncReport) -> None:
            record = self.store.find_by_directory_url(url)
            fresh: List[PeerRecord] = []
            if record is None:
                record = self.store.upsert(DirectoryEntry(directory_url=url).to_record())
                federation_metrics.track_discovered("manual")
                report.added += 1
                report.added_urls.append(record.directory_url)
                fresh.append(record)
            await self._sync_peers([record], report, fresh)

        return await self._guarded("directory_sync_one", _sync_one)

    async def sync_peer(self, peer_id: str) -> SyncReport:
        """
        Sync the directory of one known peer.

        Raises:
            PeerNotFoundError: no record with this id
        """
        record = self.store.find_by_id(peer_id)
        if record is None:
            raise PeerNotFoundError(f"Unknown peer id: {peer_id}")

        async def _sync_one(report: SyncReport) -> None:
            await self._sync_peers([record], report, [])

        return await self._guarded("directory_sync_one", _sync_one)

    async def _guarded(self, cycle: str, body: Any) -> SyncReport:
        """Run ``body`` under the engine lock; overlapping calls are skipped."""
        if self._lock.locked():
            logger.warning("Directory sync already running, skipping", cycle=cycle)
            return SyncReport(skipped=True)

        async with self._lock:
            self.config.require_identity()
            clog = CycleLogger(cycle)
            clog.start()
            report = SyncReport()
            try:
                await body(report)
            except StoreFailure as e:
                clog.finish(success=False, error=str(e))
                raise
            federation_metrics.observe_cycle(cycle, clog.elapsed)
            clog.finish(
                success=True,
                contacted=report.contacted,
                failed=report.failed,
                added=report.added,
                rejected=report.rejected,
                registered=report.registered,
            )
            return report

    async def _sync_all(self, report: SyncReport) -> None:
        peers = [
            p for p in self.store.find_all() if not self.config.is_self(p.directory_url)
        ]
        if not peers:
            logger.info("No known peers to sync")
        await self._sync_peers(peers, report, [])
        try:
            federation_metrics.set_known_peers(self.store.count())
        except StoreFailure as e:
            logger.warning("Could not count peers", error=str(e))

    async def _sync_peers(
        self, peers: List[PeerRecord], report: SyncReport, fresh: List[PeerRecord]
    ) -> None:
        """Fetch, merge in peer order, then announce to new peers."""
        known: Set[str] = {p.natural_key for p in self.store.find_all()}
        known.add(self.config.normalized_directory_url)

        results = await asyncio.gather(*[self._fetch(p) for p in peers])

        for peer, result in zip(peers, results):
            report.contacted += 1
            outcome = self._merge(peer, result, known, fresh, report)
            report.outcomes.append(outcome)

        if fresh:
            announced = await self.broadcaster.announce(fresh)
            report.registered += announced.succeeded
            report.registration_failures += announced.failed

    async def _fetch(self, peer: PeerRecord) -> FetchResult:
        async with self._semaphore:
            return await self.client.get_json(
                peer.directory_url, fallback_path=self.config.directory_fallback_path
            )

    def _merge(
        self,
        peer: PeerRecord,
        result: FetchResult,
        known: Set[str],
        fresh: List[PeerRecord],
        report: SyncReport,
    ) -> PeerOutcome:
        """Merge one peer's directory; failures become values."""
        entries = self._entries(result) if result.ok else None
        if entries is None:
            if result.ok:
                result = FetchResult.fail(
                    result.url,
                    PeerErrorType.MALFORMED_BODY,
                    "Directory body has no results list",
                    status_code=result.status_code,
                )
            return self._record_failure(peer, result, report)

        outcome = PeerOutcome(
            url=peer.directory_url,
            peer_id=peer.id,
            success=True,
            status_code=result.recorded_status,
        )
        if len(entries) > MAX_ENTRIES_PER_DIRECTORY:
            outcome.truncated = len(entries) - MAX_ENTRIES_PER_DIRECTORY
            logger.warning(
                "Directory listing truncated",
                peer=peer.directory_url,
                kept=MAX_ENTRIES_PER_DIRECTORY,
                dropped=outcome.truncated,
            )
        for payload in entries[:MAX_ENTRIES_PER_DIRECTORY]:
            try:
                entry = DirectoryEntry.from_payload(payload)
            except PeerProtocolError as e:
                outcome.rejected += 1
                logger.debug("Rejected directory entry", peer=peer.directory_url, error=str(e))
                continue

            key = entry.to_record().natural_key
            if key in known:
                continue
            known.add(key)
            try:
                created = self.store.upsert(entry.to_record())
            except StoreFailure as e:
                report.store_write_failures += 1
                logger.error("Failed to store new peer", peer=entry.directory_url, error=str(e))
                continue
            fresh.append(created)
            outcome.added += 1
            report.added_urls.append(created.directory_url)
            logger.info("Discovered peer", peer=created.directory_url, via=peer.directory_url)

        report.added += outcome.added
        report.rejected += outcome.rejected
        report.truncated += outcome.truncated
        federation_metrics.track_contact("directory_sync", True)
        federation_metrics.track_discovered("directory", outcome.added)
        federation_metrics.track_rejected(outcome.rejected)
        self._write_status(
            peer, result.recorded_status, True, report, last_sync=datetime.now(timezone.utc)
        )
        return outcome

    @staticmethod
    def _entries(result: FetchResult) -> Optional[List[Any]]:
        body = result.body
        if not isinstance(body, dict):
            return None
        entries = body.get("results")
        return entries if isinstance(entries, list) else None

    def _record_failure(
        self, peer: PeerRecord, result: FetchResult, report: SyncReport
    ) -> PeerOutcome:
        failure = result.failure
        report.failed += 1
        federation_metrics.track_contact("directory_sync", False)
        logger.warning(
            "Directory fetch failed",
            peer=peer.directory_url,
            error_type=failure.error_type,
            status=result.recorded_status,
        )
        self._write_status(peer, result.recorded_status, False, report)
        return PeerOutcome(
            url=peer.directory_url,
            peer_id=peer.id,
            success=False,
            status_code=result.recorded_status,
            error_type=failure.error_type,
            message=failure.message,
        )

    def _write_status(
        self,
        peer: PeerRecord,
        status_code: int,
        available: bool,
        report: SyncReport,
        last_sync: Optional[datetime] = None,
    ) -> None:
        if not peer.id:
            return
        try:
            self.store.update_status(peer.id, status_code, available, last_sync=last_sync)
        except StoreFailure as e:
            report.store_write_failures += 1
            logger.error("Failed to record peer status", peer=peer.directory_url, error=str(e))
