"""
Data models for catalogmesh.

Pydantic models for peers, peer failures, federated aggregation results and
engine cycle reports.
"""

from catalogmesh.core.models.aggregate import (
    AggregateError,
    AggregateResult,
    AggregateStatistics,
    PublicationLookup,
    SourceInfo,
)
from catalogmesh.core.models.peer import (
    DirectoryEntry,
    PeerRecord,
    normalize_directory_url,
)
from catalogmesh.core.models.peer_error import PeerErrorType, PeerFailure
from catalogmesh.core.models.reports import BroadcastReport, PeerOutcome, SyncReport

__all__ = [
    "AggregateError",
    "AggregateResult",
    "AggregateStatistics",
    "BroadcastReport",
    "DirectoryEntry",
    "PeerErrorType",
    "PeerFailure",
    "PeerOutcome",
    "PeerRecord",
    "PublicationLookup",
    "SourceInfo",
    "SyncReport",
    "normalize_directory_url",
]
