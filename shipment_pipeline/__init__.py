"""Shipment Retrieval & Enrichment Pipeline.

Turns date/job/customer searches into PACE queries, reads shipments in
bounded batches, retries the known corruption bug, resolves references into
display fields and returns cached, paginated results.
"""

from shipment_pipeline.assembler import ShipmentResultSet, paginate
from shipment_pipeline.cache import ShipmentResultCache, fingerprint
from shipment_pipeline.errors import (
    ErrorKind,
    FilterValidationError,
    ShipmentNotFound,
    ShipmentPipelineError,
    UpstreamCredentialsMissing,
    UpstreamQueryFailed,
)
from shipment_pipeline.fetcher import BatchedDetailFetcher, is_corruption_signature
from shipment_pipeline.models import (
    CartonContentRecord,
    CartonContentRequest,
    CartonRecord,
    LookupRecord,
    PipelineDiagnostics,
    ShipmentFilter,
    ShipmentPage,
    ShipmentRecord,
)
from shipment_pipeline.query import translate_filter
from shipment_pipeline.service import ShipmentService

__all__ = [
    # Service
    "ShipmentService",
    # Models
    "ShipmentFilter",
    "ShipmentRecord",
    "ShipmentPage",
    "ShipmentResultSet",
    "CartonRecord",
    "CartonContentRecord",
    "CartonContentRequest",
    "LookupRecord",
    "PipelineDiagnostics",
    # Stages
    "translate_filter",
    "BatchedDetailFetcher",
    "is_corruption_signature",
    "paginate",
    "ShipmentResultCache",
    "fingerprint",
    # Errors
    "ErrorKind",
    "ShipmentPipelineError",
    "UpstreamQueryFailed",
    "UpstreamCredentialsMissing",
    "FilterValidationError",
    "ShipmentNotFound",
]
