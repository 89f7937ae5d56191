"""
Federation Scheduler.

Runs directory sync and broadcast as independent periodic jobs on an
APScheduler AsyncIOScheduler. Each job has at most one run in flight:
APScheduler enforces ``max_instances=1`` and coalesces missed runs, and the
engines themselves skip a run that overlaps a manual trigger.

On first start an immediate sync is scheduled; once it completes the
"initial sync done" flag is persisted so restarts do not repeat it.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.exceptions import CatalogMeshError
from catalogmesh.core.federation.broadcast import BroadcastEngine
from catalogmesh.core.federation.directory_sync import DirectorySyncEngine
from catalogmesh.core.logging import get_logger

logger = get_logger(__name__)

SYNC_JOB_ID = "directory_sync"
BROADCAST_JOB_ID = "directory_broadcast"
INITIAL_SYNC_JOB_ID = "initial_directory_sync"


class SchedulerState:
    """Persisted scheduler flags (JSON file)."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._data = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable scheduler state", path=str(self._path), error=str(e))
            return {}

    def save(self) -> bool:
        """Persist state to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            return True
        except OSError as e:
            logger.error("Failed to save scheduler state", path=str(self._path), error=str(e))
            return False

    @property
    def initial_sync_done(self) -> bool:
        return bool(self._data.get("initial_sync_done", False))

    def mark_initial_sync_done(self) -> bool:
        self._data["initial_sync_done"] = True
        self._data["initial_sync_at"] = datetime.now(timezone.utc).isoformat()
        return self.save()


class FederationScheduler:
    """
    Periodic driver for the directory engines.
    """

    def __init__(
        self,
        sync_engine: DirectorySyncEngine,
        broadcast_engine: BroadcastEngine,
        config: FederationConfig,
        state: SchedulerState,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self.sync_engine = sync_engine
        self.broadcast_engine = broadcast_engine
        self.config = config
        self.state = state
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def start(self) -> None:
        """
        Register jobs and start the scheduler on the running event loop.

        Raises:
            ConfigurationError: own identity is not configured
        """
        self.config.require_identity()

        self._scheduler.add_job(
            self.run_sync,
            "interval",
            seconds=self.config.sync_interval_seconds,
            id=SYNC_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.run_broadcast,
            "interval",
            seconds=self.config.broadcast_interval_seconds,
            id=BROADCAST_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self.state.initial_sync_done:
            self._scheduler.add_job(
                self.initial_sync, "date", id=INITIAL_SYNC_JOB_ID, replace_existing=True
            )

        self._scheduler.start()
        logger.info(
            "Federation scheduler started",
            sync_every=self.config.sync_interval_seconds,
            broadcast_every=self.config.broadcast_interval_seconds,
            initial_sync=not self.state.initial_sync_done,
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Federation scheduler stopped")

    async def initial_sync(self) -> None:
        """One immediate sync on first start; the flag is set only on completion."""
        report = await self.run_sync()
        if report is not None and not report.skipped:
            self.state.mark_initial_sync_done()

    async def run_sync(self) -> Any:
        try:
            return await self.sync_engine.run()
        except CatalogMeshError as e:
            logger.error("Directory sync job failed", error=str(e), error_code=e.error_code)
            raise

    async def run_broadcast(self) -> Any:
        try:
            return await self.broadcast_engine.run()
        except CatalogMeshError as e:
            logger.error("Broadcast job failed", error=str(e), error_code=e.error_code)
            raise

    async def run_forever(self) -> None:
        """Start and block until cancelled."""
        self.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.shutdown()
