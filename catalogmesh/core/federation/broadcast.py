"""
Directory Broadcast Engine.

POSTs this instance's self-announcement to one target or to every known
peer. Each POST is independent: a failing peer has its status recorded and
never stops the rest. Only an unreadable peer store aborts a broadcast.
"""

import asyncio
from typing import List, Optional, Tuple

from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.exceptions import StoreFailure
from catalogmesh.core.federation.directory import DirectoryService
from catalogmesh.core.logging import CycleLogger, get_logger
from catalogmesh.core.models.peer import PeerRecord
from catalogmesh.core.models.reports import BroadcastReport, PeerOutcome
from catalogmesh.core.network.fetch_client import FetchClient, FetchResult
from catalogmesh.core.system import federation_metrics
from catalogmesh.storage.peer_store import PeerRecordStore

logger = get_logger(__name__)

# Fixed upper bound on concurrent announcement POSTs
MAX_CONCURRENT_REQUESTS = 10

Target = Tuple[str, Optional[PeerRecord]]


class BroadcastEngine:
    """
    Announces this instance to peer directories.
    """

    def __init__(
        self,
        store: PeerRecordStore,
        client: FetchClient,
        config: FederationConfig,
        directory: Optional[DirectoryService] = None,
    ) -> None:
        self.store = store
        self.client = client
        self.config = config
        self.directory = directory or DirectoryService(config, store)
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(
            min(config.max_concurrency, MAX_CONCURRENT_REQUESTS)
        )

    async def run(self) -> BroadcastReport:
        """Scheduled entry point: announce to every known peer."""
        return await self.broadcast(None)

    async def broadcast(self, target_url: Optional[str] = None) -> BroadcastReport:
        """
        Announce to ``target_url``, or to every known peer when None.

        A run that finds another broadcast in flight returns a skipped report.

        Raises:
            StoreFailure: peer list could not be read
            ConfigurationError: own identity is not configured
        """
        if self._lock.locked():
            logger.warning("Broadcast already running, skipping")
            return BroadcastReport(skipped=True)

        async with self._lock:
            clog = CycleLogger("broadcast")
            clog.start(target=target_url or "all")
            try:
                announcement = self.directory.self_announcement()
                targets = self._resolve_targets(target_url)
                report = await self._announce(targets, announcement)
            except StoreFailure as e:
                clog.finish(success=False, error=str(e))
                raise
            federation_metrics.observe_cycle("broadcast", clog.elapsed)
            clog.finish(
                success=True,
                targets=report.targets,
                succeeded=report.succeeded,
                failed=report.failed,
            )
            return report

    async def announce(self, peers: List[PeerRecord]) -> BroadcastReport:
        """Announce to specific records (used for newly discovered peers)."""
        announcement = self.directory.self_announcement()
        targets: List[Target] = [(p.directory_url, p) for p in peers]
        return await self._announce(targets, announcement)

    def _resolve_targets(self, target_url: Optional[str]) -> List[Target]:
        if target_url is not None:
            if self.config.is_self(target_url):
                logger.info("Broadcast target is this instance, nothing to do")
                return []
            return [(target_url, self.store.find_by_directory_url(target_url))]

        targets: List[Target] = []
        seen = set()
        for record in self.store.find_all():
            key = record.natural_key
            if key in seen or self.config.is_self(record.directory_url):
                continue
            seen.add(key)
            targets.append((record.directory_url, record))
        return targets

    async def _announce(self, targets: List[Target], announcement: dict) -> BroadcastReport:
        report = BroadcastReport(targets=len(targets))
        if not targets:
            return report

        tasks = [self._post_one(url, announcement) for url, _ in targets]
        results = await asyncio.gather(*tasks)

        for (url, record), result in zip(targets, results):
            outcome = self._record_outcome(url, record, result)
            report.outcomes.append(outcome)
            if outcome.success:
                report.succeeded += 1
            else:
                report.failed += 1
        return report

    async def _post_one(self, url: str, announcement: dict) -> FetchResult:
        async with self._semaphore:
            return await self.client.post(url, announcement)

    def _record_outcome(
        self, url: str, record: Optional[PeerRecord], result: FetchResult
    ) -> PeerOutcome:
        federation_metrics.track_contact("broadcast", result.ok)
        if result.ok:
            logger.info("Successfully broadcasted to directory", peer=url)
        else:
            logger.warning(
                "Failed to broadcast to directory",
                peer=url,
                error_type=result.failure.error_type,
                status=result.recorded_status,
            )

        if record is not None and record.id:
            try:
                self.store.update_status(record.id, result.recorded_status, result.ok)
            except StoreFailure as e:
                logger.error("Failed to record broadcast status", peer=url, error=str(e))

        failure = result.failure
        return PeerOutcome(
            url=url,
            peer_id=record.id if record else None,
            success=result.ok,
            status_code=result.recorded_status,
            error_type=failure.error_type if failure else None,
            message=failure.message if failure else "",
        )

