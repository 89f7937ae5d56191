"""
Peer Directory Models for catalogmesh.

PeerRecord is one known remote instance (a "listing"). DirectoryEntry is one
entry of a peer's directory response, parsed with explicit optional-field
defaults before it is allowed anywhere near the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field

from catalogmesh.core.exceptions import PeerProtocolError

# Fields only meaningful on this instance; never re-published to peers.
LOCAL_ONLY_FIELDS = frozenset(["id", "status_code", "available", "is_default", "last_sync"])

# Status never contacted
STATUS_NEVER_CONTACTED = 0


def normalize_directory_url(url: str) -> str:
    """
    Canonical form of a directory URL used as the natural key.

    Scheme and host are lower-cased and a trailing slash is stripped;
    path and query are kept as-is.
    """
    url = (url or "").strip()
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url.rstrip("/")
    path = parts.path.rstrip("/")
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, parts.query, parts.fragment)
    )


class PeerRecord(BaseModel):
    """
    Metadata for a known remote catalog instance.
    """

    id: Optional[str] = Field(None, description="Store-assigned identifier")
    directory_url: str = Field(
        ..., alias="directoryUrl", description="Peer directory endpoint (natural key)"
    )
    title: str = Field(default="")
    summary: str = Field(default="")
    description: str = Field(default="")
    catalog_ids: List[str] = Field(default_factory=list, alias="catalogIds")
    publications_endpoint: Optional[str] = Field(
        None, alias="publicationsEndpoint", description="Publication listing URL"
    )
    search: Optional[str] = Field(None, description="Search endpoint URL")
    organization: Optional[str] = Field(None)

    # Health tracking
    status_code: int = Field(default=STATUS_NEVER_CONTACTED, alias="statusCode")
    available: bool = Field(default=False)
    is_default: bool = Field(default=False, alias="isDefault")
    last_sync: Optional[datetime] = Field(None, alias="lastSync")

    class Config:
        """Pydantic config."""

        populate_by_name = True

    @property
    def natural_key(self) -> str:
        return normalize_directory_url(self.directory_url)

    @property
    def is_aggregatable(self) -> bool:
        """Default peer with a publications endpoint to query."""
        return self.is_default and bool((self.publications_endpoint or "").strip())

    def to_document(self) -> Dict[str, Any]:
        """Store representation (snake_case, JSON-safe)."""
        return self.model_dump(mode="json")

    def to_wire(self) -> Dict[str, Any]:
        """Full camelCase representation, local fields included."""
        return self.model_dump(mode="json", by_alias=True)

    def to_directory_entry(self) -> Dict[str, Any]:
        """Representation re-published in this instance's own directory."""
        return self.model_dump(
            mode="json", by_alias=True, exclude=set(LOCAL_ONLY_FIELDS)
        )


class DirectoryEntry(BaseModel):
    """
    One entry of a peer directory response, or an incoming registration.
    """

    directory_url: str
    title: str = ""
    summary: str = ""
    description: str = ""
    catalog_ids: List[str] = Field(default_factory=list)
    publications_endpoint: Optional[str] = None
    search: Optional[str] = None
    organization: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DirectoryEntry":
        """
        Parse a wire entry, defaulting every optional field.

        Accepts the current camelCase keys and the older ``directory`` /
        ``url`` spelling of the directory URL.

        Raises:
            PeerProtocolError: entry is not an object or has no directory URL
        """
        if not isinstance(payload, dict):
            raise PeerProtocolError(
                f"Directory entry must be an object, got {type(payload).__name__}"
            )

        url = _first_text(payload, "directoryUrl", "directory", "url")
        if not url:
            raise PeerProtocolError("Directory entry has no directoryUrl")

        return cls(
            directory_url=url,
            title=_first_text(payload, "title") or "",
            summary=_first_text(payload, "summary") or "",
            description=_first_text(payload, "description") or "",
            catalog_ids=_catalog_ids(payload),
            publications_endpoint=_first_text(
                payload, "publicationsEndpoint", "publications"
            ),
            search=_first_text(payload, "search"),
            organization=_first_text(payload, "organization"),
        )

    def to_record(self) -> PeerRecord:
        """Fresh, never-contacted PeerRecord for this entry."""
        return PeerRecord(
            directory_url=self.directory_url,
            title=self.title,
            summary=self.summary,
            description=self.description,
            catalog_ids=list(self.catalog_ids),
            publications_endpoint=self.publications_endpoint,
            search=self.search,
            organization=self.organization,
        )

    def descriptive_fields(self) -> Dict[str, Any]:
        """Fields a peer may refresh about itself on re-registration."""
        return {
            "title": self.title,
            "summary": self.summary,
            "description": self.description,
            "catalog_ids": list(self.catalog_ids),
            "publications_endpoint": self.publications_endpoint,
            "search": self.search,
            "organization": self.organization,
        }


def _first_text(payload: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = payload.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _catalog_ids(payload: Dict[str, Any]) -> List[str]:
    raw = payload.get("catalogIds")
    if isinstance(raw, list):
        return [str(item) for item in raw if item not in (None, "")]
    legacy = _first_text(payload, "catalogId", "catalogusId", "uuid")
    return [legacy] if legacy else []
