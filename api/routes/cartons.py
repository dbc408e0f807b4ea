"""Carton content endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from api.dependencies import get_shipment_service
from shipment_pipeline.models import CartonContentRequest
from shipment_pipeline.service import ShipmentService


router = APIRouter()


@router.post("/{carton_id}/contents", status_code=201)
async def add_carton_content(
    carton_id: str,
    request: CartonContentRequest,
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Add a job, component, product or part line to a carton."""
    created = await service.add_carton_content(carton_id, request)
    return {"success": True, "data": created}
