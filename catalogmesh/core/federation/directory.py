"""
Directory Service.

Serves this instance's own directory and handles incoming registrations
(peers POSTing their self-announcement to us).
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from catalogmesh.core.config.federation import FederationConfig
from catalogmesh.core.exceptions import PeerProtocolError
from catalogmesh.core.logging import get_logger
from catalogmesh.core.models.peer import DirectoryEntry, PeerRecord
from catalogmesh.core.system import federation_metrics
from catalogmesh.storage.peer_store import PeerRecordStore

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    """Outcome of one incoming registration."""

    record: PeerRecord
    created: bool


class DirectoryService:
    """
    This instance's view of the directory network.
    """

    def __init__(self, config: FederationConfig, store: PeerRecordStore) -> None:
        self.config = config
        self.store = store

    def self_announcement(self) -> Dict[str, Any]:
        """
        Body POSTed to peers so they can record this instance.

        Raises:
            ConfigurationError: own directory URL is missing or not absolute
        """
        self.config.require_identity()
        return {
            "directoryUrl": self.config.directory_url,
            "title": self.config.title,
            "summary": self.config.summary,
            "description": self.config.description,
            "catalogIds": list(self.config.catalog_ids),
            "publicationsEndpoint": self.config.publications_endpoint,
            "search": self.config.search_url,
        }

    def get_directory(self) -> Dict[str, Any]:
        """Own entry first, then known peers without local-only fields."""
        results: List[Dict[str, Any]] = []
        if self.config.directory_url:
            results.append(self.self_announcement())

        for record in self.store.find_all():
            if self.config.is_self(record.directory_url):
                continue
            results.append(record.to_directory_entry())

        return {"results": results, "total": len(results)}

    def register(self, payload: Any) -> RegistrationResult:
        """
        Record (or refresh) a peer that announced itself to us.

        Only descriptive fields are refreshed; contact status belongs to
        our own outbound calls.

        Raises:
            PeerProtocolError: payload has no directory URL, or names us
        """
        entry = DirectoryEntry.from_payload(payload)
        if self.config.is_self(entry.directory_url):
            raise PeerProtocolError(
                f"Registration refers to this instance: {entry.directory_url}",
                why_it_happened="An instance cannot register itself as its own peer",
            )

        existing = self.store.find_by_directory_url(entry.directory_url)
        if existing is not None:
            updated = self.store.update_fields(existing.id, entry.descriptive_fields())
            logger.info("Peer registration refreshed", peer=entry.directory_url)
            return RegistrationResult(record=updated or existing, created=False)

        record = self.store.upsert(entry.to_record())
        federation_metrics.track_discovered("registration")
        logger.info("Peer registered", peer=entry.directory_url, id=record.id)
        return RegistrationResult(record=record, created=True)
