"""Shipment Service - the pipeline facade used by the API.

Flow for a search:

    filter -> translate_filter -> FIND ids (sorted @id desc)
           -> batched READ + normalize + date filter (+ corruption retry)
           -> enrichment -> customer filter -> date sort -> page -> cache

Only identifier discovery, configuration and input validation abort a
request. Everything else degrades into PipelineDiagnostics.
"""

import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from connectors.erp_base import (
    ID_DESCENDING,
    LOOKUP_TYPES,
    NUMERIC_KEY_TYPES,
    ObjectStore,
    ObjectType,
)
from connectors.pace.pace_auth import PaceCredentialsMissingError
from connectors.pace.pace_client import PaceApiError, PaceNotFoundError
from core.config import PaceSettings, get_settings
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from shipment_pipeline.assembler import ShipmentResultSet, assemble
from shipment_pipeline.cache import ShipmentResultCache, fingerprint, result_set_fingerprint
from shipment_pipeline.cartons import CartonLoader, ContentEnricher, build_content_payload
from shipment_pipeline.enrichment import LookupResolver, ShipmentEnricher
from shipment_pipeline.errors import (
    ErrorKind,
    FilterValidationError,
    ShipmentNotFound,
    UpstreamCredentialsMissing,
    UpstreamQueryFailed,
)
from shipment_pipeline.fetcher import BatchedDetailFetcher, FetchErrorKind
from shipment_pipeline.models import (
    CartonContentRequest,
    CartonRecord,
    LookupRecord,
    PipelineDiagnostics,
    ShipmentFilter,
    ShipmentPage,
    ShipmentRecord,
)
from shipment_pipeline.normalize import normalize_shipment
from shipment_pipeline.query import date_bounds, translate_filter, within_bounds

logger = get_logger(__name__)


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def _require_numeric_id(value: Any, label: str) -> str:
    key = str(value).strip() if value is not None else ""
    if not key.isdigit():
        raise FilterValidationError(
            f"Invalid {label} id: must be numeric",
            details={label: value},
        )
    return key


class ShipmentService:
    """Searches, reads and enriches PACE shipments.

    Usage:
        service = ShipmentService(store)
        page = await service.search(ShipmentFilter(job="112823"))
        shipment = await service.get_one("4711")
        cartons = await service.get_cartons("4711")
    """

    def __init__(
        self,
        store: ObjectStore,
        settings: Optional[PaceSettings] = None,
        cache: Optional[ShipmentResultCache] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else ShipmentResultCache(
            ttl_seconds=self.settings.cache_ttl_seconds,
            max_entries=self.settings.cache_max_entries,
        )
        self.metrics = metrics if metrics is not None else get_metrics()
        self.display_tz = ZoneInfo(self.settings.display_timezone)

    async def close(self) -> None:
        await self.store.close()

    # =========================================================================
    # Error translation
    # =========================================================================

    @contextmanager
    def _upstream_errors(self, action: str):
        """Convert connector exceptions into request-fatal pipeline errors."""
        try:
            yield
        except PaceCredentialsMissingError as e:
            logger.error(str(e))
            raise UpstreamCredentialsMissing(str(e), details={"missing": e.missing}) from e
        except PaceApiError as e:
            self.metrics.record_upstream_failure()
            logger.error(
                f"{action} failed",
                extra_fields={"status": e.status_code, "error": str(e)[:200]},
            )
            raise UpstreamQueryFailed.from_upstream(
                f"{action} failed: {e}", e.status_code, e.response_body
            ) from e

    def _coerce_filter(self, shipment_filter: Union[ShipmentFilter, Dict[str, Any]]) -> ShipmentFilter:
        if isinstance(shipment_filter, ShipmentFilter):
            return shipment_filter
        return ShipmentFilter.build(**shipment_filter)

    # =========================================================================
    # Search
    # =========================================================================

    async def _find_shipment_ids(self, xpath: str) -> List[str]:
        return await self.store.find_objects(
            ObjectType.JOB_SHIPMENT.value,
            xpath,
            offset=0,
            limit=self.settings.find_limit,
            sort=[ID_DESCENDING],
        )

    async def _run_pipeline(self, shipment_filter: ShipmentFilter) -> ShipmentResultSet:
        diagnostics = PipelineDiagnostics()
        translated = translate_filter(shipment_filter, self.settings.use_shipped_prefilter)
        start, end = date_bounds(shipment_filter, self.settings.display_timezone)

        with with_correlation(stage="find"):
            logger.info("Finding shipments", extra_fields={"xpath": translated.xpath})
            find_started = time.monotonic()
            with self._upstream_errors("Shipment search"):
                ids = await self._find_shipment_ids(translated.xpath)
            self.metrics.record_stage_time("find", (time.monotonic() - find_started) * 1000)
            logger.info(f"PACE returned {len(ids)} shipment ids")

        def normalizer(raw: Dict[str, Any]) -> Optional[ShipmentRecord]:
            record = normalize_shipment(raw, self.display_tz)
            if translated.defer_date_filter and not within_bounds(record.dateTime, start, end):
                return None
            return record

        fetcher = BatchedDetailFetcher(
            self.store,
            batch_size=self.settings.fetch_batch_size,
            metrics=self.metrics,
        )
        with self._upstream_errors("Shipment fetch"):
            records = await fetcher.fetch_with_retry(ids, normalizer, diagnostics)
            resolver = LookupResolver(self.store, diagnostics, self.metrics)
            records = await ShipmentEnricher(resolver).enrich(records)

        with with_correlation(stage="assemble"):
            result = assemble(records, shipment_filter.customer, diagnostics)
            logger.info(
                f"Assembled {len(result)} shipments",
                extra_fields={"before_customer_filter": len(records)},
            )
        return result

    async def search(self, shipment_filter: Union[ShipmentFilter, Dict[str, Any]]) -> ShipmentPage:
        """One page of shipments matching the filter.

        Raises:
            FilterValidationError: Malformed filter (no upstream call is made)
            UpstreamQueryFailed: FIND failed
            UpstreamCredentialsMissing: PACE settings are missing
        """
        shipment_filter = self._coerce_filter(shipment_filter)
        key = fingerprint(shipment_filter)

        with with_correlation(request_id=_new_request_id(), filter_fingerprint=key):
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit")
                self.metrics.record_search(cache_hit=True)
                return cached
            logger.debug("Cache miss")
            self.metrics.record_search(cache_hit=False)

            started = time.monotonic()
            result_set = await self._run_pipeline(shipment_filter)
            page = result_set.page(shipment_filter.page, shipment_filter.page_size)
            self.cache.set(key, page)
            self.metrics.record_stage_time("search", (time.monotonic() - started) * 1000)
            return page

    async def search_all(self, shipment_filter: Union[ShipmentFilter, Dict[str, Any]]) -> ShipmentResultSet:
        """The full sorted result set, for callers that paginate themselves."""
        shipment_filter = self._coerce_filter(shipment_filter)
        key = result_set_fingerprint(shipment_filter)

        with with_correlation(request_id=_new_request_id(), filter_fingerprint=key):
            cached = self.cache.get(key)
            if cached is not None:
                self.metrics.record_search(cache_hit=True)
                return cached
            self.metrics.record_search(cache_hit=False)

            result_set = await self._run_pipeline(shipment_filter)
            self.cache.set(key, result_set)
            return result_set

    def invalidate_cache(self, key: Optional[str] = None) -> int:
        """Drop one cached fingerprint, or all of them."""
        removed = self.cache.invalidate(key)
        logger.info(f"Invalidated {removed} cache entr{'y' if removed == 1 else 'ies'}")
        return removed

    # =========================================================================
    # Single shipment
    # =========================================================================

    async def get_one(self, shipment_id: str) -> ShipmentRecord:
        """Read, normalize and enrich one shipment.

        The corruption signature is retried once.

        Raises:
            ShipmentNotFound: PACE has no such shipment
            UpstreamQueryFailed: The read failed (including twice-corrupted)
        """
        shipment_id = _require_numeric_id(shipment_id, "shipment")

        with with_correlation(request_id=_new_request_id(), shipment_id=shipment_id, stage="fetch"):
            fetcher = BatchedDetailFetcher(self.store, metrics=self.metrics)

            def normalizer(raw: Dict[str, Any]) -> ShipmentRecord:
                return normalize_shipment(raw, self.display_tz)

            with self._upstream_errors("Shipment read"):
                outcome = await fetcher.read_one(shipment_id, normalizer)
                if outcome.error_kind == FetchErrorKind.CORRUPTION_SIGNATURE:
                    logger.info("Corrupted response, retrying once")
                    outcome = await fetcher.read_one(shipment_id, normalizer)

            if not outcome.ok:
                if outcome.status_code == 404:
                    raise ShipmentNotFound(f"Shipment {shipment_id} not found")
                if outcome.error_kind == FetchErrorKind.CORRUPTION_SIGNATURE:
                    logger.error("Shipment still corrupted after retry; report to the PACE administrator")
                    raise UpstreamQueryFailed(
                        f"Shipment {shipment_id} is corrupted upstream",
                        kind=ErrorKind.RECORD_CORRUPTED,
                        details=outcome.detail,
                    )
                if outcome.error_kind == FetchErrorKind.JSON_PARSE_ERROR:
                    raise UpstreamQueryFailed(
                        f"Shipment {shipment_id} returned an unreadable body",
                        kind=ErrorKind.JSON_PARSE_ERROR,
                        details=outcome.detail,
                    )
                self.metrics.record_upstream_failure()
                raise UpstreamQueryFailed.from_upstream(
                    outcome.message or f"Failed to read shipment {shipment_id}",
                    outcome.status_code,
                    outcome.detail,
                )

            resolver = LookupResolver(self.store, metrics=self.metrics)
            with self._upstream_errors("Shipment enrichment"):
                enriched = await ShipmentEnricher(resolver).enrich([outcome.record])
            return enriched[0]

    # =========================================================================
    # Cartons
    # =========================================================================

    async def get_cartons(
        self,
        shipment_id: str,
        diagnostics: Optional[PipelineDiagnostics] = None,
    ) -> List[CartonRecord]:
        """Cartons of a shipment with enriched content lines.

        Pass a PipelineDiagnostics to observe dropped contents and lookup
        misses.
        """
        shipment_id = _require_numeric_id(shipment_id, "shipment")
        diagnostics = diagnostics if diagnostics is not None else PipelineDiagnostics()

        with with_correlation(request_id=_new_request_id(), shipment_id=shipment_id, stage="cartons"):
            with self._upstream_errors("Carton search"):
                cartons = await CartonLoader(self.store, diagnostics).load(shipment_id)
                resolver = LookupResolver(self.store, diagnostics, self.metrics)
                contents = [content for carton in cartons for content in carton.contents]
                enriched = iter(await ContentEnricher(resolver).enrich(contents))

            for carton in cartons:
                carton.contents = [next(enriched) for _ in carton.contents]

            if diagnostics.dropped_contents:
                logger.warning(f"Dropped {diagnostics.dropped_contents} carton content line(s)")
            return cartons

    async def add_carton_content(self, carton_id: str, request: CartonContentRequest) -> Dict[str, Any]:
        """Create a content line in a carton and return the stored body."""
        carton_id = _require_numeric_id(carton_id, "carton")
        payload = build_content_payload(carton_id, request)

        with with_correlation(request_id=_new_request_id(), stage="create"):
            with self._upstream_errors("Carton content create"):
                created = await self.store.create_object(ObjectType.CARTON_CONTENT.value, payload)
            logger.info(f"Added content to carton {carton_id}", extra_fields={"payload": payload})
            return created

    # =========================================================================
    # Lookups
    # =========================================================================

    async def lookup(self, object_type: str, primary_key: str) -> Optional[LookupRecord]:
        """Resolve one reference by type name and id.

        Returns:
            LookupRecord, or None when PACE has no such object

        Raises:
            FilterValidationError: Unknown type, or a non-numeric id for a
                numeric-key type
        """
        try:
            lookup_type = ObjectType(object_type)
        except ValueError:
            lookup_type = None
        if lookup_type not in LOOKUP_TYPES:
            raise FilterValidationError(
                f"Invalid lookup type: {object_type}",
                details={"valid_types": sorted(t.value for t in LOOKUP_TYPES)},
            )

        key = str(primary_key).strip() if primary_key is not None else ""
        if not key:
            raise FilterValidationError(f"Missing {object_type} id")
        if lookup_type in NUMERIC_KEY_TYPES:
            key = _require_numeric_id(key, lookup_type.value)

        with with_correlation(request_id=_new_request_id(), stage="lookup"):
            with self._upstream_errors(f"{lookup_type.value} lookup"):
                try:
                    raw = await self.store.read_object(lookup_type.value, key)
                except PaceNotFoundError:
                    logger.info(f"{lookup_type.value} {key} not found")
                    return None
            return LookupRecord.from_raw(lookup_type, key, raw)
