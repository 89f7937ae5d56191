"""
catalogmesh API application factory.

    app = create_app(config)
    uvicorn.run(app, host=config.api.host, port=config.api.port)

Errors raised by the services are mapped to JSON responses carrying the
error code and fix hints of the CatalogMeshError hierarchy.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from catalogmesh import __version__
from catalogmesh.api.routes.directory import router as directory_router
from catalogmesh.api.routes.federation import router as federation_router
from catalogmesh.api.routes.listings import router as listings_router
from catalogmesh.core.config import Config, load_config
from catalogmesh.core.exceptions import (
    CatalogMeshError,
    ConfigurationError,
    PeerNotFoundError,
    PeerProtocolError,
    StoreFailure,
)
from catalogmesh.core.federation.services import FederationServices
from catalogmesh.core.logging import get_logger

logger = get_logger(__name__)

ERROR_STATUS = {
    PeerProtocolError: 400,
    PeerNotFoundError: 404,
    StoreFailure: 503,
    ConfigurationError: 500,
}


def _status_for(exc: CatalogMeshError) -> int:
    for exc_type, code in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return code
    return 500


async def catalogmesh_error_handler(request: Request, exc: CatalogMeshError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error_code=exc.error_code, error=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={
            "error": str(exc),
            "error_code": exc.error_code,
            "how_to_fix": exc.how_to_fix,
        },
    )


def create_app(
    config: Optional[Config] = None, services: Optional[FederationServices] = None
) -> FastAPI:
    """
    Build the API for one configuration.

    Args:
        config: Loaded configuration (load_config() when omitted)
        services: Pre-built services, mainly for tests
    """
    config = config or load_config()
    services = services or FederationServices.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if config.api.run_scheduler:
            scheduler = services.build_scheduler()
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown()

    app = FastAPI(title="catalogmesh API", version=__version__, lifespan=lifespan)
    app.state.services = services
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CatalogMeshError, catalogmesh_error_handler)

    app.include_router(directory_router)
    app.include_router(federation_router)
    app.include_router(listings_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "healthy", "version": __version__}

    return app
