"""
Persistence for catalogmesh: the generic object store and the peer store on top of it.
"""

from catalogmesh.storage.object_store import (
    InMemoryObjectStore,
    JsonFileObjectStore,
    ObjectStore,
)
from catalogmesh.storage.peer_store import PeerRecordStore

__all__ = [
    "InMemoryObjectStore",
    "JsonFileObjectStore",
    "ObjectStore",
    "PeerRecordStore",
]
