"""
Listings API Router.

Known peers, their local settings and on-demand directory sync.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from catalogmesh.api.dependencies import get_services
from catalogmesh.core.exceptions import PeerNotFoundError, PeerProtocolError
from catalogmesh.core.federation.services import FederationServices
from catalogmesh.core.models.reports import SyncReport

router = APIRouter(prefix="/api/listings", tags=["listings"])


@router.get("", summary="Known peers")
async def list_listings(services: FederationServices = Depends(get_services)):
    records = services.store.find_all()
    return {"results": [r.to_wire() for r in records], "total": len(records)}


@router.patch("/{listing_id}", summary="Update local peer settings")
async def update_listing(
    listing_id: str,
    payload: Dict[str, Any] = Body(...),
    services: FederationServices = Depends(get_services),
):
    """Set the locally curated ``isDefault`` flag of one peer."""
    flag = payload.get("isDefault", payload.get("is_default"))
    if not isinstance(flag, bool):
        raise PeerProtocolError("Body must carry a boolean isDefault")
    record = services.store.set_default(listing_id, flag)
    if record is None:
        raise PeerNotFoundError(f"Unknown peer id: {listing_id}")
    return record.to_wire()


@router.post("/sync", response_model=SyncReport, summary="Sync directories")
async def sync_listings(
    payload: Optional[Dict[str, Any]] = Body(None),
    services: FederationServices = Depends(get_services),
):
    """
    Sync one directory URL (``directoryUrl`` in the body, added if unknown)
    or, with no URL, run a full sync cycle.
    """
    url = None
    if payload:
        url = payload.get("directoryUrl") or payload.get("directory")
    if url:
        return await services.sync.sync_directory(url)
    return await services.sync.run()


@router.post("/{listing_id}/sync", response_model=SyncReport, summary="Sync one peer")
async def sync_listing(
    listing_id: str, services: FederationServices = Depends(get_services)
):
    return await services.sync.sync_peer(listing_id)
