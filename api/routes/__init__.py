"""API Routes Package."""

from api.routes import health, shipments, cartons, lookup, metrics

__all__ = [
    "health",
    "shipments",
    "cartons",
    "lookup",
    "metrics",
]
