"""API Package.

FastAPI server exposing the shipment pipeline.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
