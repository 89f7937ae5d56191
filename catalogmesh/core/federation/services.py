"""
Wiring of the federation components for one configuration.

The API and CLI both build their engines here so they share one store,
one fetch client and one lock per engine.
"""

from dataclasses import dataclass
from typing import Optional

from catalogmesh.core.config import Config
from catalogmesh.core.federation.aggregation import AggregationEngine
from catalogmesh.core.federation.broadcast import BroadcastEngine
from catalogmesh.core.federation.directory import DirectoryService
from catalogmesh.core.federation.directory_sync import DirectorySyncEngine
from catalogmesh.core.network.fetch_client import FetchClient
from catalogmesh.core.system.scheduler import FederationScheduler, SchedulerState
from catalogmesh.storage.peer_store import PeerRecordStore


@dataclass
class FederationServices:
    """Every federation component built from one Config."""

    config: Config
    store: PeerRecordStore
    client: FetchClient
    directory: DirectoryService
    broadcast: BroadcastEngine
    sync: DirectorySyncEngine
    aggregation: AggregationEngine

    @classmethod
    def from_config(
        cls, config: Config, store: Optional[PeerRecordStore] = None
    ) -> "FederationServices":
        federation = config.federation
        store = store or PeerRecordStore.from_config(config)
        client = FetchClient.from_config(federation)
        directory = DirectoryService(federation, store)
        broadcast = BroadcastEngine(store, client, federation, directory)
        return cls(
            config=config,
            store=store,
            client=client,
            directory=directory,
            broadcast=broadcast,
            sync=DirectorySyncEngine(store, client, federation, broadcast),
            aggregation=AggregationEngine(store, client, federation),
        )

    def build_scheduler(self) -> FederationScheduler:
        return FederationScheduler(
            self.sync,
            self.broadcast,
            self.config.federation,
            SchedulerState(self.config.scheduler_state_path),
        )
