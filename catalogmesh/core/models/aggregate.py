"""
Federated Aggregation Models.

Response envelope of a federated publication request: merged results with
provenance, per-peer errors and call statistics.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from catalogmesh.core.models.peer_error import PeerErrorType


class SourceInfo(BaseModel):
    """Provenance stamped on every aggregated item as ``_source``."""

    endpoint: str
    listing_id: Optional[str] = None
    listing_title: str = ""


class AggregateError(BaseModel):
    """One failed peer call of a federated request."""

    listing_id: Optional[str] = None
    listing_title: str = ""
    endpoint: str
    error_type: PeerErrorType
    status_code: Optional[int] = None
    message: str = ""

    class Config:
        """Pydantic config."""

        use_enum_values = True


class AggregateStatistics(BaseModel):
    """Call counters for one federated request."""

    total_endpoints: int = Field(default=0, ge=0)
    successful_calls: int = Field(default=0, ge=0)
    failed_calls: int = Field(default=0, ge=0)
    total_publications: int = Field(default=0, ge=0)
    truncated_results: int = Field(
        default=0, ge=0, description="Items dropped past the per-peer bound"
    )

    @property
    def all_failed(self) -> bool:
        return self.total_endpoints > 0 and self.failed_calls == self.total_endpoints


class AggregateResult(BaseModel):
    """
    Merged publications from all eligible peers.

    ``results`` keeps peer order, then each peer's response order. No
    cross-peer dedup is applied. ``sources`` lists every queried peer,
    failed ones included.
    """

    results: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    sources: List[SourceInfo] = Field(default_factory=list)
    errors: List[AggregateError] = Field(default_factory=list)
    statistics: AggregateStatistics = Field(default_factory=AggregateStatistics)


class PublicationLookup(BaseModel):
    """Result of a federated single-publication lookup."""

    publication: Optional[Dict[str, Any]] = None
    source: Optional[SourceInfo] = None
    errors: List[AggregateError] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.publication is not None
