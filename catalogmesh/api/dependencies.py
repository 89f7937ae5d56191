"""Request-scoped access to the federation services built at startup."""

from fastapi import Request

from catalogmesh.core.federation.services import FederationServices


def get_services(request: Request) -> FederationServices:
    return request.app.state.services
