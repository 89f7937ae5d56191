"""
Outbound HTTP access to peer instances.
"""

from catalogmesh.core.network.fetch_client import FetchClient, FetchResult

__all__ = ["FetchClient", "FetchResult"]
