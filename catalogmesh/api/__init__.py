"""
HTTP API for catalogmesh.

    from catalogmesh.api import create_app
    app = create_app(load_config())
"""

from catalogmesh.api.main import create_app

__all__ = ["create_app"]
