"""Health check endpoints.

None of these call PACE; they report local configuration only.
"""

from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter, Response
from pydantic import BaseModel

from core.config import get_settings


router = APIRouter()

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]
    missing_settings: List[str] = []


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Process health plus whether PACE credentials are configured."""
    missing = get_settings().missing_credentials
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        services={
            "api": "up",
            "pace": "not_configured" if missing else "configured",
        },
        missing_settings=missing,
    )


@router.get("/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Readiness probe: not ready until PACE credentials are set."""
    if get_settings().missing_credentials:
        response.status_code = 503
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
