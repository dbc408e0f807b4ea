"""FastAPI server for PACE shipments.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import shutdown_shipment_service
from api.routes import (
    health,
    shipments,
    cartons,
    lookup,
    metrics,
)
from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from shipment_pipeline.errors import ShipmentPipelineError

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    logger.info("PACE Shipments API starting up...")
    if settings.missing_credentials:
        logger.warning(
            "PACE credentials are not configured",
            extra_fields={"missing": settings.missing_credentials},
        )

    yield

    # Shutdown
    await shutdown_shipment_service()
    logger.info("PACE Shipments API shutting down...")


async def pipeline_error_handler(request: Request, exc: ShipmentPipelineError) -> JSONResponse:
    """Render pipeline failures as {error, message, details}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PACE Shipments API",
        description="Search, repair and enrich PACE ERP job shipments",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShipmentPipelineError, pipeline_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(metrics.router, tags=["Metrics"])
    app.include_router(shipments.router, prefix="/shipments", tags=["Shipments"])
    app.include_router(cartons.router, prefix="/cartons", tags=["Cartons"])
    app.include_router(lookup.router, prefix="/lookup", tags=["Lookup"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
