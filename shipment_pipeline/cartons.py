"""Cartons and carton contents of a shipment.

Loading is FIND Carton (@shipment=ID) -> READ each carton -> FIND
CartonContent (@carton=ID) -> READ each content, all in full fan-out.
Partial failures degrade instead of failing the request:
- a carton that cannot be read is dropped
- a carton whose contents cannot be listed is returned without contents
- a content line that cannot be read, or references nothing, is dropped
"""

import asyncio
from typing import Any, Dict, List, Optional

from connectors.erp_base import ObjectStore, ObjectType
from connectors.pace.pace_client import PaceApiError
from core.observability.logging import get_logger
from shipment_pipeline.enrichment import LookupResolver
from shipment_pipeline.models import (
    CartonContentRecord,
    CartonContentRequest,
    CartonRecord,
    PipelineDiagnostics,
    lookup_display_name,
)
from shipment_pipeline.normalize import normalize_carton, normalize_content, reference, split_composite_key

logger = get_logger(__name__)

CHILD_FIND_LIMIT = 1000


class CartonLoader:
    """Reads the cartons of one shipment with their content lines."""

    def __init__(self, store: ObjectStore, diagnostics: PipelineDiagnostics):
        self.store = store
        self.diagnostics = diagnostics

    async def load(self, shipment_id: str) -> List[CartonRecord]:
        """Cartons of a shipment, contents not yet enriched.

        Raises:
            PaceApiError: Listing the cartons failed
        """
        carton_ids = await self.store.find_objects(
            ObjectType.CARTON.value,
            f"@shipment={shipment_id}",
            limit=CHILD_FIND_LIMIT,
        )
        logger.info(f"Found {len(carton_ids)} carton(s)")
        cartons = await asyncio.gather(*(self._load_carton(cid) for cid in carton_ids))
        return [c for c in cartons if c is not None]

    async def _load_carton(self, carton_id: str) -> Optional[CartonRecord]:
        try:
            carton = normalize_carton(
                await self.store.read_object(ObjectType.CARTON.value, carton_id)
            )
        except (PaceApiError, ValueError) as e:
            logger.warning(f"Failed to read carton {carton_id}", extra_fields={"error": str(e)[:200]})
            return None

        try:
            content_ids = await self.store.find_objects(
                ObjectType.CARTON_CONTENT.value,
                f"@carton={carton_id}",
                limit=CHILD_FIND_LIMIT,
            )
        except PaceApiError as e:
            logger.warning(
                f"Failed to list contents of carton {carton_id}",
                extra_fields={"status": e.status_code},
            )
            return carton

        contents = await asyncio.gather(*(self._load_content(cid) for cid in content_ids))
        carton.contents = [c for c in contents if c is not None]
        return carton

    async def _load_content(self, content_id: str) -> Optional[CartonContentRecord]:
        try:
            content = normalize_content(
                await self.store.read_object(ObjectType.CARTON_CONTENT.value, content_id)
            )
        except (PaceApiError, ValueError) as e:
            logger.warning(f"Failed to read carton content {content_id}", extra_fields={"error": str(e)[:200]})
            self.diagnostics.dropped_contents += 1
            return None

        if content is None:
            logger.warning(f"Carton content {content_id} has no job, component, product or part")
            self.diagnostics.dropped_contents += 1
        return content


class ContentEnricher:
    """Adds descriptions to content lines, one lookup per distinct subject."""

    def __init__(self, resolver: LookupResolver):
        self.resolver = resolver

    async def enrich(self, contents: List[CartonContentRecord]) -> List[CartonContentRecord]:
        def subjects(kind: ObjectType):
            return [c for c in contents if c.subject_kind == kind]

        jobs, components, products, parts = await asyncio.gather(
            self.resolver.resolve_many(ObjectType.JOB, (c.job for c in subjects(ObjectType.JOB))),
            self.resolver.resolve_many(
                ObjectType.JOB_COMPONENT, (c.jobComponent for c in subjects(ObjectType.JOB_COMPONENT))
            ),
            self.resolver.resolve_many(
                ObjectType.JOB_PRODUCT, (c.jobProduct for c in subjects(ObjectType.JOB_PRODUCT))
            ),
            self.resolver.resolve_many(
                ObjectType.JOB_PART, (c.job_part_key for c in subjects(ObjectType.JOB_PART))
            ),
        )

        enriched = []
        for content in contents:
            kind = content.subject_kind
            update: Dict[str, Any] = {}
            if kind == ObjectType.JOB:
                update["jobDescription"] = lookup_display_name(kind, jobs.get(content.job))
            elif kind == ObjectType.JOB_COMPONENT:
                body = components.get(content.jobComponent) or {}
                update["jobComponentDescription"] = lookup_display_name(kind, body)
                update["jobComponentItemNumber"] = reference(body.get("u_itemNumber"))
                update["jobComponentPO"] = reference(body.get("u_po"))
            elif kind == ObjectType.JOB_PRODUCT:
                update["jobProductDescription"] = lookup_display_name(kind, products.get(content.jobProduct))
            elif kind == ObjectType.JOB_PART:
                update["jobPartDescription"] = lookup_display_name(kind, parts.get(content.job_part_key))
            enriched.append(content.model_copy(update=update))
        return enriched


def _numeric_or_text(value: str) -> Any:
    return int(value) if value.isdigit() else value


def build_content_payload(carton_id: str, request: CartonContentRequest) -> Dict[str, Any]:
    """CREATE CartonContent payload.

    For a job part PACE wants ``jobPartJob`` (the job) plus ``jobPart`` (the
    part number) and no ``job``.
    """
    quantity = request.quantity
    payload: Dict[str, Any] = {
        "carton": _numeric_or_text(str(carton_id)),
        "quantity": int(quantity) if float(quantity).is_integer() else quantity,
    }

    if request.job_part:
        part_job, part = split_composite_key(request.job_part)
        payload["jobPartJob"] = part_job or request.job
        payload["jobPart"] = part
    elif request.job_component:
        payload["jobComponent"] = _numeric_or_text(request.job_component)
    elif request.job_product:
        payload["jobProduct"] = _numeric_or_text(request.job_product)
    else:
        payload["job"] = request.job

    if request.description:
        payload["contentDescription"] = request.description
    return payload
