"""
Peer Record Storage.

CRUD over PeerRecords on top of an ObjectStore. The directory URL is the
natural key: a record is created or updated, never duplicated.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from catalogmesh.core.exceptions import StoreFailure
from catalogmesh.core.logging import get_logger
from catalogmesh.core.models.peer import PeerRecord, normalize_directory_url
from catalogmesh.storage.object_store import (
    InMemoryObjectStore,
    JsonFileObjectStore,
    ObjectStore,
)

logger = get_logger(__name__)


class PeerRecordStore:
    """
    Persistent registry of known peer instances.
    """

    def __init__(self, backend: Optional[ObjectStore] = None) -> None:
        self._backend = backend or InMemoryObjectStore(
            key_field="directory_url", normalize_key=normalize_directory_url
        )

    @classmethod
    def from_config(cls, config: Any) -> "PeerRecordStore":
        """Build the store selected by ``project.store_backend``."""
        if config.project.store_backend == "memory":
            return cls()
        return cls(
            JsonFileObjectStore(
                config.peers_path,
                key_field="directory_url",
                normalize_key=normalize_directory_url,
            )
        )

    def _to_record(self, document: Dict[str, Any]) -> Optional[PeerRecord]:
        try:
            return PeerRecord.model_validate(document)
        except ValidationError as e:
            logger.warning(
                "Skipping unreadable peer document", id=document.get("id"), error=str(e)
            )
            return None

    def _call(self, operation: str, func: Any, *args: Any) -> Any:
        """Run a backend call; any backend error surfaces as StoreFailure."""
        try:
            return func(*args)
        except StoreFailure:
            raise
        except (OSError, ValueError, TypeError) as e:
            raise StoreFailure(f"Peer store {operation} failed: {e}") from e

    def find_all(self, filters: Optional[Dict[str, Any]] = None) -> List[PeerRecord]:
        """All records whose fields equal every filter value."""
        documents = self._call("read", self._backend.find_all, filters)
        records = [self._to_record(doc) for doc in documents]
        return [r for r in records if r is not None]

    def find_by_directory_url(self, url: str) -> Optional[PeerRecord]:
        if not url:
            return None
        document = self._call("read", self._backend.find_by_natural_key, url)
        return self._to_record(document) if document else None

    def find_by_id(self, peer_id: str) -> Optional[PeerRecord]:
        document = self._call("read", self._backend.find_by_id, peer_id)
        return self._to_record(document) if document else None

    def upsert(self, record: PeerRecord) -> PeerRecord:
        """
        Create when the directory URL is unknown, else update the fields the
        caller set explicitly; id is kept.
        """
        existing = self._call(
            "read", self._backend.find_by_natural_key, record.directory_url
        )
        if existing is not None:
            fields = record.model_dump(mode="json", exclude_unset=True)
            fields.pop("id", None)
            stored = self._call(
                "write", self._backend.partial_update, existing["id"], fields
            )
            return PeerRecord.model_validate(stored)

        document = record.to_document()
        if not document.get("id"):
            document.pop("id", None)
        stored = self._call("write", self._backend.upsert, document)
        return PeerRecord.model_validate(stored)

    def update_fields(self, peer_id: str, fields: Dict[str, Any]) -> Optional[PeerRecord]:
        """Set selected snake_case fields on one record."""
        stored = self._call("write", self._backend.partial_update, peer_id, fields)
        return PeerRecord.model_validate(stored) if stored else None

    def set_default(self, peer_id: str, enabled: bool) -> Optional[PeerRecord]:
        """Opt a peer in or out of default federated aggregation."""
        record = self.update_fields(peer_id, {"is_default": enabled})
        if record is not None:
            logger.info("Peer default flag changed", id=peer_id, is_default=enabled)
        return record

    def update_status(
        self,
        peer_id: str,
        status_code: int,
        available: bool,
        last_sync: Optional[datetime] = None,
    ) -> None:
        """Replace the contact outcome; ``last_sync`` only when given."""
        fields: Dict[str, Any] = {"status_code": status_code, "available": available}
        if last_sync is not None:
            if last_sync.tzinfo is None:
                last_sync = last_sync.replace(tzinfo=timezone.utc)
            fields["last_sync"] = last_sync.isoformat()
        if self._call("write", self._backend.partial_update, peer_id, fields) is None:
            logger.warning("Status update for unknown peer", id=peer_id)

    def delete(self, peer_id: str) -> bool:
        """Administrative removal. Engines never call this."""
        return self._call("write", self._backend.delete, peer_id)

    def count(self) -> int:
        return len(self._call("read", self._backend.find_all, None))
