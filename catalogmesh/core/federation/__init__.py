"""
Directory federation engines.

Directory sync (pull and discover), broadcast (announce), federated
aggregation (fan-out publication queries) and the directory service that
answers peers.
"""

from catalogmesh.core.federation.aggregation import AggregationEngine
from catalogmesh.core.federation.broadcast import BroadcastEngine
from catalogmesh.core.federation.directory import DirectoryService, RegistrationResult
from catalogmesh.core.federation.directory_sync import DirectorySyncEngine

__all__ = [
    "AggregationEngine",
    "BroadcastEngine",
    "DirectoryService",
    "DirectorySyncEngine",
    "RegistrationResult",
]
