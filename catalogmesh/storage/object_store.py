"""
Object Store backends.

The generic document store the peer store sits on. Documents are plain
JSON-safe dicts with a store-assigned ``id`` and one natural-key field.

Backends
--------
**InMemoryObjectStore**
    Process-local dict, used by tests and ``project.store_backend: memory``.

**JsonFileObjectStore**
    One JSON file, rewritten atomically (temp file + rename) on every write.
    Each operation holds an inter-process file lock next to the store file.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from catalogmesh.core.exceptions import StoreFailure
from catalogmesh.core.logging import get_logger

logger = get_logger(__name__)

Document = Dict[str, Any]
KeyNormalizer = Callable[[str], str]

# Fixed upper bound on stored documents
MAX_DOCUMENTS = 10_000
DEFAULT_LOCK_TIMEOUT_SEC = 10.0


def _identity(value: str) -> str:
    return value


def _matches(document: Document, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(document.get(key) == value for key, value in filters.items())


class ObjectStore(ABC):
    """
    Narrow document-store interface.

    Args:
        key_field: Document field holding the natural key
        normalize_key: Applied to natural keys before comparison
    """

    def __init__(
        self, key_field: str, normalize_key: Optional[KeyNormalizer] = None
    ) -> None:
        self.key_field = key_field
        self.normalize_key = normalize_key or _identity

    @abstractmethod
    def find_all(self, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        """Documents whose fields equal every filter value."""

    @abstractmethod
    def find_by_id(self, doc_id: str) -> Optional[Document]:
        """Lookup by store id."""

    @abstractmethod
    def find_by_natural_key(self, key: str) -> Optional[Document]:
        """Lookup by normalized natural key."""

    @abstractmethod
    def upsert(self, document: Document) -> Document:
        """Create when the natural key is unknown, else update in place."""

    @abstractmethod
    def partial_update(self, doc_id: str, fields: Dict[str, Any]) -> Optional[Document]:
        """Set ``fields`` on one document; None when the id is unknown."""

    @abstractmethod
    def delete(self, doc_id: str) -> bool:
        """Remove one document; False when the id is unknown."""


class InMemoryObjectStore(ObjectStore):
    """Dict-backed store. Returned documents are copies."""

    def __init__(
        self,
        key_field: str = "directory_url",
        normalize_key: Optional[KeyNormalizer] = None,
    ) -> None:
        super().__init__(key_field, normalize_key)
        self._documents: Dict[str, Document] = {}
        self._lock = threading.RLock()

    def _locked(self) -> Any:
        """Context guarding one load-modify-save sequence."""
        return self._lock

    def _load(self) -> Dict[str, Document]:
        return self._documents

    def _save(self, documents: Dict[str, Document]) -> None:
        self._documents = documents

    def find_all(self, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        with self._locked():
            return [
                copy.deepcopy(doc) for doc in self._load().values() if _matches(doc, filters)
            ]

    def find_by_id(self, doc_id: str) -> Optional[Document]:
        with self._locked():
            doc = self._load().get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_by_natural_key(self, key: str) -> Optional[Document]:
        wanted = self.normalize_key(key)
        with self._locked():
            for doc in self._load().values():
                if self.normalize_key(doc.get(self.key_field, "")) == wanted:
                    return copy.deepcopy(doc)
        return None

    def upsert(self, document: Document) -> Document:
        key = document.get(self.key_field)
        if not key:
            raise ValueError(f"Document has no {self.key_field}")
        wanted = self.normalize_key(key)

        with self._locked():
            documents = self._load()
            existing = next(
                (
                    doc
                    for doc in documents.values()
                    if self.normalize_key(doc.get(self.key_field, "")) == wanted
                ),
                None,
            )
            if existing is not None:
                merged = dict(existing)
                merged.update({k: v for k, v in document.items() if k != "id"})
                documents[existing["id"]] = merged
                stored = merged
            else:
                if len(documents) >= MAX_DOCUMENTS:
                    raise StoreFailure(f"Store is full ({MAX_DOCUMENTS} documents)")
                stored = dict(document)
                stored["id"] = stored.get("id") or uuid.uuid4().hex
                documents[stored["id"]] = stored
            self._save(documents)
            return copy.deepcopy(stored)

    def partial_update(self, doc_id: str, fields: Dict[str, Any]) -> Optional[Document]:
        with self._locked():
            documents = self._load()
            if doc_id not in documents:
                return None
            updated = dict(documents[doc_id])
            updated.update({k: v for k, v in fields.items() if k != "id"})
            documents[doc_id] = updated
            self._save(documents)
            return copy.deepcopy(updated)

    def delete(self, doc_id: str) -> bool:
        with self._locked():
            documents = self._load()
            if documents.pop(doc_id, None) is None:
                return False
            self._save(documents)
            return True


class JsonFileObjectStore(InMemoryObjectStore):
    """
    Store persisted to a single JSON file.

    Every operation re-reads the file under a ``filelock.FileLock`` held for
    the whole load-modify-save sequence, so several processes (API server
    and scheduler) can share one data dir without losing each other's
    writes. Waiting longer than ``lock_timeout`` raises StoreFailure.
    """

    def __init__(
        self,
        path: Path,
        key_field: str = "directory_url",
        normalize_key: Optional[KeyNormalizer] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SEC,
    ) -> None:
        super().__init__(key_field, normalize_key)
        self._path = Path(path)
        self._file_lock = FileLock(
            str(self._path.with_suffix(".json.lock")), timeout=lock_timeout
        )

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._file_lock.acquire()
            except FileLockTimeout as e:
                raise StoreFailure(f"Timed out waiting for store lock {e.lock_file}") from e
            except OSError as e:
                raise StoreFailure(f"Failed to lock store {self._path}: {e}") from e
            try:
                yield
            finally:
                self._file_lock.release()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Document]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f) or {}
        except (OSError, ValueError) as e:
            raise StoreFailure(f"Failed to read store {self._path}: {e}") from e

        # Handle legacy format where root was a list of documents
        if isinstance(data, list):
            data = {"documents": data}
        documents = data.get("documents", []) if isinstance(data, dict) else []
        return {
            doc["id"]: doc
            for doc in documents
            if isinstance(doc, dict) and doc.get("id")
        }

    def _save(self, documents: Dict[str, Document]) -> None:
        payload = {
            "version": 1,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "documents": list(documents.values()),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                suffix=".json", prefix=f"{self._path.stem}_", dir=str(self._path.parent)
            )
        except OSError as e:
            raise StoreFailure(f"Failed to write store {self._path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            Path(temp_path).replace(self._path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError as cleanup_err:
                logger.debug("Failed to clean up temp file", path=temp_path, error=str(cleanup_err))
            raise StoreFailure(f"Failed to write store {self._path}: {e}") from e
