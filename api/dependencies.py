"""FastAPI dependencies.

The ShipmentService (and its PACE client) is created lazily once per
process. Tests replace get_shipment_service through
``app.dependency_overrides``.
"""

from typing import Optional

from connectors.pace.pace_auth import get_default_credentials_provider
from connectors.pace.pace_client import PaceApiClient, PaceApiConfig
from core.config import get_settings
from shipment_pipeline.service import ShipmentService

_service: Optional[ShipmentService] = None


def get_shipment_service() -> ShipmentService:
    """Get the process-wide shipment service."""
    global _service
    if _service is None:
        settings = get_settings()
        client = PaceApiClient(
            get_default_credentials_provider(),
            PaceApiConfig(timeout_seconds=settings.http_timeout_seconds),
        )
        _service = ShipmentService(client, settings=settings)
    return _service


async def shutdown_shipment_service() -> None:
    """Close the upstream session, if one was opened."""
    global _service
    if _service is not None:
        await _service.close()
        _service = None
