"""catalogmesh - Federated directory engine for catalog-publishing instances.

Discovers peer instances, keeps a local directory of known peers, announces
this instance to the mesh, and aggregates publications from every peer.
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
