"""
Federation Prometheus Metrics Definition.

Contact outcomes, discovery and aggregation latency for the directory
engines. Exposed by the API at ``/metrics``.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Contact Metrics ---

PEER_CONTACTS = Counter(
    "catalogmesh_peer_contacts_total",
    "Outbound peer calls by engine and outcome",
    ["engine", "outcome"],
)

PEERS_DISCOVERED = Counter(
    "catalogmesh_peers_discovered_total",
    "Peer records created from directory listings or registrations",
    ["source"],
)

ENTRIES_REJECTED = Counter(
    "catalogmesh_directory_entries_rejected_total",
    "Peer directory entries rejected as protocol errors",
)

KNOWN_PEERS = Gauge(
    "catalogmesh_known_peers",
    "Peer records in the local store after the last sync cycle",
)

# --- Performance Metrics ---

CYCLE_DURATION = Histogram(
    "catalogmesh_cycle_duration_seconds",
    "Duration of background sync and broadcast cycles",
    ["cycle"],
    buckets=(0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)

AGGREGATION_LATENCY = Histogram(
    "catalogmesh_aggregation_latency_seconds",
    "Latency of federated publication requests in seconds",
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0),
)


def track_contact(engine: str, success: bool) -> None:
    """Increment the peer contact counter."""
    PEER_CONTACTS.labels(engine=engine, outcome="success" if success else "failure").inc()


def track_discovered(source: str, count: int = 1) -> None:
    if count > 0:
        PEERS_DISCOVERED.labels(source=source).inc(count)


def track_rejected(count: int = 1) -> None:
    if count > 0:
        ENTRIES_REJECTED.inc(count)


def set_known_peers(count: int) -> None:
    KNOWN_PEERS.set(count)


def observe_cycle(cycle: str, seconds: float) -> None:
    CYCLE_DURATION.labels(cycle=cycle).observe(seconds)


def get_aggregation_timer():
    """Return a timer for aggregation latency."""
    return AGGREGATION_LATENCY.time()
