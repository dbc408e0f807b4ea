"""Batched detail fetching with corruption retry.

Identifiers are read in fixed-size batches: every read in a batch runs
concurrently and the next batch starts only when the whole batch is done.
Each body is normalized (and date-filtered) as soon as it arrives.

PACE intermittently fails a read with a ClassCastException on the
description field. Those ids are collected and read again in one fully
parallel pass; anything that fails twice is reported, never raised.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from connectors.erp_base import ObjectStore, ObjectType
from connectors.pace.pace_client import PaceApiError, PaceJsonParseError
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from shipment_pipeline.models import PipelineDiagnostics

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50
PROGRESS_EVERY_BATCHES = 10
ERROR_SAMPLE_SIZE = 3

CORRUPTION_MARKERS = ("description", "ClassCastException")

# Raw body -> record, or None when the record is filtered out
Normalizer = Callable[[Dict[str, Any]], Optional[Any]]


class FetchErrorKind(str, Enum):
    """Why a single detail read produced no record."""
    JSON_PARSE_ERROR = "JsonParseError"
    FETCH_ERROR = "RecordFetchError"
    CORRUPTION_SIGNATURE = "CorruptionSignature"


def is_corruption_signature(body: Any) -> bool:
    """Whether an upstream error body shows the description cast bug.

    True only when the body mentions both "description" and
    "ClassCastException". Empty or missing bodies are never corrupt.
    """
    if not body:
        return False
    text = body if isinstance(body, str) else str(body)
    return all(marker in text for marker in CORRUPTION_MARKERS)


def classify_failure(error: Exception) -> FetchErrorKind:
    """Map a read failure onto the per-record taxonomy."""
    if is_corruption_signature(getattr(error, "response_body", None)):
        return FetchErrorKind.CORRUPTION_SIGNATURE
    if isinstance(error, (PaceJsonParseError, ValueError)):
        return FetchErrorKind.JSON_PARSE_ERROR
    return FetchErrorKind.FETCH_ERROR


@dataclass
class FetchOutcome:
    """Result of reading one identifier."""
    id: str
    record: Any = None
    error_kind: Optional[FetchErrorKind] = None
    skipped: bool = False
    status_code: int = 0
    detail: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.record is not None


class BatchedDetailFetcher:
    """Reads full bodies for a list of identifiers.

    Usage:
        fetcher = BatchedDetailFetcher(store, batch_size=50)
        records = await fetcher.fetch_with_retry(ids, normalizer, diagnostics)
    """

    def __init__(
        self,
        store: ObjectStore,
        object_type: ObjectType = ObjectType.JOB_SHIPMENT,
        batch_size: int = DEFAULT_BATCH_SIZE,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.object_type = object_type
        self.batch_size = max(1, batch_size)
        self.metrics = metrics if metrics is not None else get_metrics()

    async def read_one(self, primary_key: str, normalizer: Normalizer) -> FetchOutcome:
        """Read and normalize one record. Never raises for upstream errors."""
        try:
            raw = await self.store.read_object(self.object_type.value, primary_key)
        except PaceApiError as e:
            return FetchOutcome(
                id=primary_key,
                error_kind=classify_failure(e),
                status_code=e.status_code,
                detail=(e.response_body or str(e))[:200],
                message=str(e),
            )

        try:
            record = normalizer(raw)
        except (ValueError, TypeError, OverflowError) as e:
            # Body decoded but does not fit the record contract
            return FetchOutcome(
                id=primary_key,
                error_kind=FetchErrorKind.JSON_PARSE_ERROR,
                status_code=200,
                detail=str(e)[:200],
            )

        if record is None:
            return FetchOutcome(id=primary_key, skipped=True)
        return FetchOutcome(id=primary_key, record=record)

    async def fetch_all(
        self,
        identifiers: Iterable[str],
        normalizer: Normalizer,
        diagnostics: PipelineDiagnostics,
    ) -> List[Any]:
        """First pass: sequential batches, full fan-out inside a batch.

        Corrupted ids are added to ``diagnostics.corrupted_ids`` for
        retry_corrupted(); other failures are counted and dropped.
        """
        unique_ids = list(dict.fromkeys(str(i) for i in identifiers))
        batches = [
            unique_ids[i:i + self.batch_size]
            for i in range(0, len(unique_ids), self.batch_size)
        ]
        logger.info(
            f"Reading {len(unique_ids)} {self.object_type.value} records in {len(batches)} batches",
            extra_fields={"batch_size": self.batch_size},
        )

        records: List[Any] = []
        for index, batch in enumerate(batches):
            outcomes = await asyncio.gather(*(self.read_one(pk, normalizer) for pk in batch))
            for outcome in outcomes:
                if outcome.ok:
                    records.append(outcome.record)
                elif outcome.skipped:
                    diagnostics.skipped_by_date += 1
                elif outcome.error_kind == FetchErrorKind.CORRUPTION_SIGNATURE:
                    diagnostics.corrupted_ids.append(outcome.id)
                else:
                    self._record_error(outcome, diagnostics)

            if (index + 1) % PROGRESS_EVERY_BATCHES == 0 or index == len(batches) - 1:
                done = min((index + 1) * self.batch_size, len(unique_ids))
                logger.info(f"Processed {done}/{len(unique_ids)} records")

        return records

    def _record_error(self, outcome: FetchOutcome, diagnostics: PipelineDiagnostics) -> None:
        if outcome.error_kind == FetchErrorKind.JSON_PARSE_ERROR:
            diagnostics.json_errors.append(outcome.id)
        else:
            diagnostics.fetch_errors.append(outcome.id)

        error_count = len(diagnostics.json_errors) + len(diagnostics.fetch_errors)
        if error_count <= ERROR_SAMPLE_SIZE:
            logger.warning(
                f"Failed to read {self.object_type.value} {outcome.id}",
                extra_fields={
                    "error_kind": outcome.error_kind.value,
                    "status": outcome.status_code,
                    "detail": outcome.detail,
                },
            )

    async def retry_corrupted(
        self,
        identifiers: List[str],
        normalizer: Normalizer,
        diagnostics: PipelineDiagnostics,
    ) -> List[Any]:
        """Second pass over corrupted ids, all at once.

        Successes go to ``recovered_ids``; anything that fails again goes to
        ``failed_ids``.
        """
        if not identifiers:
            return []

        with with_correlation(stage="retry"):
            logger.info(f"Retrying {len(identifiers)} corrupted record(s) in parallel")
            outcomes = await asyncio.gather(*(self.read_one(pk, normalizer) for pk in identifiers))

            records: List[Any] = []
            for outcome in outcomes:
                if outcome.ok:
                    records.append(outcome.record)
                    diagnostics.recovered_ids.append(outcome.id)
                elif outcome.skipped:
                    diagnostics.recovered_ids.append(outcome.id)
                    diagnostics.skipped_by_date += 1
                else:
                    diagnostics.failed_ids.append(outcome.id)

            logger.info(
                f"Retry recovered {len(diagnostics.recovered_ids)}/{len(identifiers)} record(s)"
            )
            if diagnostics.failed_ids:
                logger.error(
                    "Records still corrupted after retry; report to the PACE administrator",
                    extra_fields={"ids": diagnostics.failed_ids},
                )
        return records

    async def fetch_with_retry(
        self,
        identifiers: Iterable[str],
        normalizer: Normalizer,
        diagnostics: PipelineDiagnostics,
    ) -> List[Any]:
        """Both passes. Each identifier yields at most one record."""
        started = time.monotonic()
        id_list = list(identifiers)

        with with_correlation(stage="fetch"):
            records = await self.fetch_all(id_list, normalizer, diagnostics)
        recovered = await self.retry_corrupted(list(diagnostics.corrupted_ids), normalizer, diagnostics)
        records.extend(recovered)

        logger.info(
            f"Fetched {len(records)} records",
            extra_fields={
                "fetch_errors": len(diagnostics.fetch_errors),
                "json_errors": len(diagnostics.json_errors),
                "corrupted": len(diagnostics.corrupted_ids),
                "recovered": len(diagnostics.recovered_ids),
                "skipped_by_date": diagnostics.skipped_by_date,
            },
        )
        self.metrics.record_fetch_summary(
            identifiers=len(id_list),
            records=len(records),
            fetch_errors=len(diagnostics.fetch_errors),
            json_errors=len(diagnostics.json_errors),
            corrupted=len(diagnostics.corrupted_ids),
            recovered=len(diagnostics.recovered_ids),
        )
        self.metrics.record_stage_time("fetch", (time.monotonic() - started) * 1000)
        return records
