"""Reference enrichment.

Resolves foreign keys into display fields with one lookup per distinct id:

    job          -> customer id -> customerName
    shipVia      -> shipViaDescription + provider id -> shipViaProviderName
    shipmentType -> shipmentTypeDescription

The three chains run concurrently; hops inside a chain run in order. A
failed lookup leaves its fields None and is recorded as a miss.
"""

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from connectors.erp_base import ObjectStore, ObjectType
from connectors.pace.pace_client import PaceApiError, PaceNotFoundError
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from shipment_pipeline.models import PipelineDiagnostics, ShipmentRecord, lookup_display_name
from shipment_pipeline.normalize import reference

logger = get_logger(__name__)


class LookupResolver:
    """Deduplicating reader for referenced objects.

    Lives for one pipeline invocation. Concurrent requests for the same
    (type, id) share a single upstream read.
    """

    def __init__(
        self,
        store: ObjectStore,
        diagnostics: Optional[PipelineDiagnostics] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.diagnostics = diagnostics if diagnostics is not None else PipelineDiagnostics()
        self.metrics = metrics if metrics is not None else get_metrics()
        self._reads: Dict[Tuple[ObjectType, str], "asyncio.Future[Optional[Dict[str, Any]]]"] = {}

    async def _read(self, object_type: ObjectType, primary_key: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.read_object(object_type.value, primary_key)
        except PaceNotFoundError:
            logger.debug(f"{object_type.value} {primary_key} not found")
        except (PaceApiError, ValueError) as e:
            logger.debug(
                f"Lookup of {object_type.value} {primary_key} failed",
                extra_fields={"error": str(e)[:200]},
            )
        self.diagnostics.record_enrichment_miss(object_type.value, primary_key)
        self.metrics.record_enrichment_miss(object_type.value)
        return None

    async def resolve(self, object_type: ObjectType, primary_key: str) -> Optional[Dict[str, Any]]:
        """Raw body of a referenced object, or None when it cannot be read."""
        key = (object_type, primary_key)
        if key not in self._reads:
            self._reads[key] = asyncio.ensure_future(self._read(object_type, primary_key))
        return await self._reads[key]

    async def resolve_many(
        self,
        object_type: ObjectType,
        primary_keys: Iterable[Optional[str]],
    ) -> Dict[str, Optional[Dict[str, Any]]]:
        """Resolve the distinct non-empty keys in parallel."""
        distinct = list(dict.fromkeys(k for k in primary_keys if k))
        bodies = await asyncio.gather(*(self.resolve(object_type, k) for k in distinct))
        return dict(zip(distinct, bodies))

    @property
    def read_count(self) -> int:
        """Number of distinct upstream reads issued."""
        return len(self._reads)


class ShipmentEnricher:
    """Adds customer, ship-via and shipment-type display fields."""

    def __init__(self, resolver: LookupResolver):
        self.resolver = resolver

    async def _job_chain(self, shipments: List[ShipmentRecord]) -> Dict[str, Dict[str, Any]]:
        jobs = await self.resolver.resolve_many(ObjectType.JOB, (s.job for s in shipments))
        job_customers = {
            job: reference(body.get("customer")) if body else None
            for job, body in jobs.items()
        }
        customers = await self.resolver.resolve_many(ObjectType.CUSTOMER, job_customers.values())

        updates: Dict[str, Dict[str, Any]] = {}
        for job, customer_id in job_customers.items():
            if customer_id is None:
                continue
            updates[job] = {
                "customer": customer_id,
                "customerName": lookup_display_name(ObjectType.CUSTOMER, customers.get(customer_id)),
            }
        return updates

    async def _ship_via_chain(self, shipments: List[ShipmentRecord]) -> Dict[str, Dict[str, Any]]:
        ship_vias = await self.resolver.resolve_many(ObjectType.SHIP_VIA, (s.shipVia for s in shipments))
        via_providers = {
            via: reference(body.get("provider")) if body else None
            for via, body in ship_vias.items()
        }
        providers = await self.resolver.resolve_many(ObjectType.SHIP_PROVIDER, via_providers.values())

        updates: Dict[str, Dict[str, Any]] = {}
        for via, body in ship_vias.items():
            if body is None:
                continue
            provider_id = via_providers[via]
            updates[via] = {
                "shipViaDescription": lookup_display_name(ObjectType.SHIP_VIA, body),
                "shipViaProvider": provider_id,
                "shipViaProviderName": lookup_display_name(
                    ObjectType.SHIP_PROVIDER, providers.get(provider_id)
                ) if provider_id else None,
            }
        return updates

    async def _shipment_type_chain(self, shipments: List[ShipmentRecord]) -> Dict[str, Dict[str, Any]]:
        types = await self.resolver.resolve_many(
            ObjectType.SHIPMENT_TYPE, (s.shipmentType for s in shipments)
        )
        return {
            type_id: {"shipmentTypeDescription": lookup_display_name(ObjectType.SHIPMENT_TYPE, body)}
            for type_id, body in types.items()
            if body is not None
        }

    async def enrich(self, shipments: List[ShipmentRecord]) -> List[ShipmentRecord]:
        """Return copies of the shipments with enrichment fields applied."""
        if not shipments:
            return []

        started = time.monotonic()
        with with_correlation(stage="enrich"):
            by_job, by_via, by_type = await asyncio.gather(
                self._job_chain(shipments),
                self._ship_via_chain(shipments),
                self._shipment_type_chain(shipments),
            )

            enriched = []
            for shipment in shipments:
                update: Dict[str, Any] = {}
                update.update(by_job.get(shipment.job, {}) if shipment.job else {})
                update.update(by_via.get(shipment.shipVia, {}) if shipment.shipVia else {})
                update.update(by_type.get(shipment.shipmentType, {}) if shipment.shipmentType else {})
                enriched.append(shipment.model_copy(update=update) if update else shipment)

            misses = self.resolver.diagnostics.enrichment_miss_count
            if misses:
                logger.warning(
                    f"{misses} reference(s) could not be resolved",
                    extra_fields={"misses": self.resolver.diagnostics.enrichment_misses},
                )

        self.resolver.metrics.record_stage_time("enrich", (time.monotonic() - started) * 1000)
        return enriched
