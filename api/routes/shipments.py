"""Shipment endpoints.

Search, detail and cartons of PACE job shipments.
"""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_shipment_service
from shipment_pipeline.models import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ShipmentFilter
from shipment_pipeline.service import ShipmentService


router = APIRouter()


@router.get("")
async def list_shipments(
    start_date: Optional[date] = Query(None, alias="startDate", description="First ship day (display time zone)"),
    end_date: Optional[date] = Query(None, alias="endDate", description="Last ship day, inclusive"),
    job: Optional[str] = Query(None, description="Exact job number"),
    customer: Optional[str] = Query(None, description="Customer name substring"),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Search shipments.

    ``total`` and ``hasMore`` are estimates; PACE cannot count matches.
    """
    shipment_filter = ShipmentFilter.build(
        start_date=start_date,
        end_date=end_date,
        job=job,
        customer=customer,
        page=page,
        page_size=page_size,
    )
    result = await service.search(shipment_filter)
    return {"success": True, "data": result.model_dump(by_alias=True, mode="json")}


@router.post("/cache/invalidate")
async def invalidate_cache(
    key: Optional[str] = Query(None, description="Fingerprint to drop; omit to clear all"),
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Drop cached search results."""
    removed = service.invalidate_cache(key)
    return {"success": True, "data": {"removed": removed}}


@router.get("/{shipment_id}")
async def get_shipment(
    shipment_id: str,
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Get one enriched shipment."""
    shipment = await service.get_one(shipment_id)
    return {"success": True, "data": shipment.model_dump(mode="json")}


@router.get("/{shipment_id}/cartons")
async def get_shipment_cartons(
    shipment_id: str,
    service: ShipmentService = Depends(get_shipment_service),
) -> Dict[str, Any]:
    """Get the cartons of a shipment with enriched contents."""
    cartons = await service.get_cartons(shipment_id)
    return {"success": True, "data": [c.model_dump(mode="json") for c in cartons]}
