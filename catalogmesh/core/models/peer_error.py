"""
Peer Failure Models.

Categorize failures from remote peers. Failures are values: they are
recorded on the peer and returned in reports, never raised past one peer.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# Status recorded for a peer when no HTTP response was received at all.
NETWORK_FAILURE_STATUS = 500


class PeerErrorType(str, Enum):
    """Categories of federated network failures."""

    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    MALFORMED_BODY = "MALFORMED_BODY"
    INVALID_ENTRY = "INVALID_ENTRY"

    @property
    def is_unreachable(self) -> bool:
        """Network-level failure (no usable HTTP exchange)."""
        return self in (PeerErrorType.TIMEOUT, PeerErrorType.CONNECTION_ERROR)


class PeerFailure(BaseModel):
    """
    Data container for a failed peer contact attempt.
    """

    url: str = Field(..., description="URL that was contacted")
    error_type: PeerErrorType = Field(...)
    status_code: Optional[int] = Field(
        None, description="HTTP status code if applicable"
    )
    message: str = Field(default="Peer request failed")

    class Config:
        """Pydantic config."""

        use_enum_values = True

    @property
    def recorded_status(self) -> int:
        """Status stored on the PeerRecord for this failure."""
        if self.status_code:
            return self.status_code
        return NETWORK_FAILURE_STATUS
