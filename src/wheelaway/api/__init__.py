"""HTTP API module for wheelaway.

Public API:
    create_app -- FastAPI application factory around a controller
"""

from wheelaway.api.server import create_app, serve

__all__ = ["create_app", "serve"]
