"""
Directory API Router.

GET serves this instance's directory to peers; POST is where peers announce
themselves.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Response, status

from catalogmesh.api.dependencies import get_services
from catalogmesh.core.federation.services import FederationServices

router = APIRouter(prefix="/api/directory", tags=["directory"])


@router.get("", summary="This instance's directory")
async def get_directory(services: FederationServices = Depends(get_services)):
    """Own entry first, then every known peer."""
    return services.directory.get_directory()


@router.post("", summary="Register a peer directory")
async def register_directory(
    response: Response,
    payload: Dict[str, Any] = Body(...),
    services: FederationServices = Depends(get_services),
):
    """Create or refresh the announcing peer; 201 when it was unknown."""
    result = services.directory.register(payload)
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return {
        "created": result.created,
        "listing": result.record.to_wire(),
    }
