"""
Core Infrastructure for catalogmesh.

Architecture Position
---------------------
    CLI / API (outermost)
      └── Storage (object store, peer records)
            └── **Core** (innermost - you are here)

Components
----------
**Configuration (config/)**
    Instance identity and federation settings. Dataclasses plus a pydantic
    FederationConfig, loaded from YAML with ${VAR} expansion.

**Logging (logging.py)**
    Structured key=value logging with a cycle timer for background jobs.

**Exceptions (exceptions.py)**
    CatalogMeshError hierarchy. Only store and configuration failures are
    raised; peer failures travel as values (see models/peer_error.py).

**Network (network/)**
    FetchClient: bounded-timeout GET/POST to peers, no automatic retry.

**Federation (federation/)**
    Directory sync, broadcast, aggregation and the local directory service.

**System (system/)**
    Prometheus metrics and the non-overlapping job scheduler.
"""
