"""Reference lookup endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_shipment_service
from shipment_pipeline.service import ShipmentService


router = APIRouter()


@router.get("/{object_type}/{object_id}")
async def lookup(
    object_type: str,
    object_id: str,
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Resolve a ShipVia, Job, Customer, ... by id.

    JobPart ids are the composite "job:part".
    """
    record = await service.lookup(object_type, object_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{object_type} {object_id} not found")
    return {"success": True, "data": record.model_dump(by_alias=True, mode="json")}
