"""
Federation API Router.

Aggregated publication search across every default peer.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from catalogmesh.api.dependencies import get_services
from catalogmesh.core.federation.services import FederationServices
from catalogmesh.core.models.aggregate import AggregateResult

router = APIRouter(prefix="/api/federation", tags=["federation"])


def _client_config(request: Request) -> dict:
    """Incoming query parameters, repeated keys included, go to every peer."""
    return {"params": request.query_params.multi_items()}


@router.get(
    "/publications",
    response_model=AggregateResult,
    summary="Publications from all federated peers",
)
async def get_federated_publications(
    request: Request, services: FederationServices = Depends(get_services)
):
    return await services.aggregation.get_publications(_client_config(request))


@router.get("/publications/{publication_id}", summary="One federated publication")
async def get_federated_publication(
    publication_id: str,
    request: Request,
    services: FederationServices = Depends(get_services),
):
    """First peer (in peer order) that knows the publication wins."""
    lookup = await services.aggregation.get_publication(
        publication_id, _client_config(request)
    )
    if not lookup.found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": f"Publication {publication_id} not found on any peer",
                "errors": [e.model_dump() for e in lookup.errors],
            },
        )
    return lookup.publication
