"""
Exception Hierarchy for catalogmesh.

Only failures that make the current cycle or request meaningless are raised.
A peer that times out, answers 500 or returns garbage is *not* an exception
here: those outcomes travel as PeerFailure values (see
catalogmesh.core.models.peer_error) so callers can count them.

Each exception includes:
- error_code: Unique identifier for documentation lookup (e.g. "CM-STOR-001")
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue

Exception Hierarchy
-------------------
    CatalogMeshError (base)
    ├── StoreFailure
    ├── ConfigurationError
    └── PeerProtocolError

Usage
-----
    from catalogmesh.core.exceptions import StoreFailure

    try:
        report = await engine.run()
    except StoreFailure as e:
        logger.error("Sync cycle aborted", error=str(e))
        raise
"""

import re
from typing import List, Optional


def sanitize_path(path: str) -> str:
    """Replace user home directories and key-like tokens in a path."""
    if not path:
        return path

    patterns = [
        (r"[A-Za-z]:\\Users\\[^\\]+", r"<user-home>"),
        (r"/(?:home|Users)/[^/]+", r"<user-home>"),
        (r"[a-zA-Z0-9]{32,}", r"<key>"),
    ]

    result = path
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)
    return result


def sanitize_message(message: str) -> str:
    """Mask credentials embedded in URLs, bearer tokens and home paths.

    Peer URLs end up in error messages that are returned to API callers,
    so basic-auth userinfo must never be echoed back.
    """
    if not message:
        return message

    result = re.sub(r"://[^:/@\s]+:[^@/\s]+@", "://<user>:<pass>@", message)
    result = re.sub(r"Bearer\s+[a-zA-Z0-9_.-]+", "Bearer <token>", result)
    result = re.sub(
        r"/(?:home|Users)/[^\s\"']+", lambda m: sanitize_path(m.group(0)), result
    )
    return result


class CatalogMeshError(Exception):
    """
    Base exception for all catalogmesh errors.

    Example
    -------
        try:
            store.upsert(record)
        except CatalogMeshError as e:
            logger.error(f"Store write failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    error_code: str = "CM-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        super().__init__(sanitize_message(message))

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix


class StoreFailure(CatalogMeshError):
    """
    Raised when the local object store cannot be read or written.

    This is the only error class that aborts a sync/broadcast cycle or a
    federated request: without the store no peer outcome can be recorded.
    """

    error_code = "CM-STOR-001"
    why_it_happened = (
        "The local peer store is unavailable. The data directory may be "
        "missing, unwritable, or the store file may be corrupted"
    )
    how_to_fix = [
        "Check that the data directory exists and is writable",
        "Check disk space",
        "Inspect or restore the peers file under the data directory",
    ]


class ConfigurationError(CatalogMeshError):
    """
    Raised when this instance's own identity or settings are invalid.

    A missing publications endpoint on a *peer* is not a configuration
    error; that peer is simply left out of aggregation.
    """

    error_code = "CM-CFG-001"
    why_it_happened = (
        "This instance's federation settings are incomplete. The own "
        "directory URL is required to announce and to exclude self-references"
    )
    how_to_fix = [
        "Set federation.directory_url in config.yaml",
        "Or export CATALOGMESH_DIRECTORY_URL=https://host/api/directory",
    ]


class PeerProtocolError(CatalogMeshError):
    """
    Raised by payload parsers when a peer entry cannot be used.

    Never propagates past one peer's processing step: the engines catch it
    and record a PeerFailure / rejected-entry counter instead.
    """

    error_code = "CM-PEER-002"
    why_it_happened = "A peer returned data that does not match the directory protocol"
    how_to_fix = [
        "Check the peer's directory endpoint returns {\"results\": [...]}",
        "Every entry must carry a non-empty directoryUrl",
    ]


class PeerNotFoundError(CatalogMeshError):
    """Raised when an operation names a peer id the store does not know."""

    error_code = "CM-PEER-001"
    why_it_happened = "No peer record exists with this id"
    how_to_fix = [
        "List known peers with: catalogmesh peers list",
        "Add the peer first with: catalogmesh peers add <directory-url>",
    ]

