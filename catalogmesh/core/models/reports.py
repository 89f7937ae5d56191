"""
Cycle report models for the directory sync and broadcast engines.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PeerOutcome(BaseModel):
    """What happened when one peer was contacted during a cycle."""

    url: str
    peer_id: Optional[str] = None
    success: bool
    status_code: int = 0
    error_type: Optional[str] = None
    message: str = ""
    added: int = 0
    rejected: int = 0
    truncated: int = 0


class SyncReport(BaseModel):
    """Outcome of one directory sync cycle."""

    contacted: int = 0
    failed: int = 0
    added: int = 0
    rejected: int = 0
    truncated: int = Field(
        default=0, description="Directory entries dropped past the per-peer bound"
    )
    registered: int = 0
    registration_failures: int = 0
    store_write_failures: int = 0
    skipped: bool = Field(
        default=False, description="True when another sync was already running"
    )
    added_urls: List[str] = Field(default_factory=list)
    outcomes: List[PeerOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.contacted - self.failed


class BroadcastReport(BaseModel):
    """Outcome of one broadcast cycle."""

    targets: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: bool = False
    outcomes: List[PeerOutcome] = Field(default_factory=list)
