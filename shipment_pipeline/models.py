"""Shipment pipeline models.

Strict internal records built from the loose PACE envelopes. Record fields
keep PACE's camelCase names so API output matches what the upstream and the
existing screens call them. Envelope models (filters, pages, diagnostics)
use snake_case attributes and serialize to camelCase.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from connectors.erp_base import DISPLAY_NAME_FIELDS, ObjectType
from shipment_pipeline.errors import FilterValidationError

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class PipelineModel(BaseModel):
    """Base for envelopes exposed with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


def _validation_details(error: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
        for err in error.errors()
    ]


# =============================================================================
# Filters
# =============================================================================

class ShipmentFilter(PipelineModel):
    """Caller search criteria.

    Dates are calendar days in the display time zone; both bounds are
    inclusive. ``customer`` is a case-insensitive substring matched after
    enrichment.
    """
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    job: Optional[str] = None
    customer: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("job", "customer", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("job")
    @classmethod
    def _job_is_quotable(cls, value):
        if value is not None and "'" in value:
            raise ValueError("job must not contain a single quote")
        return value

    @model_validator(mode="after")
    def _check_date_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must be on or before endDate")
        return self

    @property
    def has_date_bounds(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    @classmethod
    def build(cls, **kwargs) -> "ShipmentFilter":
        """Validate caller input.

        Raises:
            FilterValidationError: If any field is malformed
        """
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise FilterValidationError(
                "Invalid shipment filter",
                details=_validation_details(e),
            ) from e


# =============================================================================
# Records
# =============================================================================

class ShipmentRecord(BaseModel):
    """One JobShipment after normalization.

    ``dateTime`` is the single normalized, timezone-aware ship date.
    Enrichment fields stay None until the enrichment stage has run.
    """
    id: str
    job: Optional[str] = None
    jobPart: Optional[str] = None
    shipVia: Optional[str] = None
    shipmentType: Optional[str] = None
    dateTime: Optional[datetime] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    shipViaNote: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    address3: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    contactFirstName: Optional[str] = None
    contactLastName: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    trackingNumber: Optional[str] = None
    quantity: Optional[float] = None
    cost: Optional[float] = None
    charge: Optional[float] = None

    # Enrichment
    customer: Optional[str] = None
    customerName: Optional[str] = None
    shipViaDescription: Optional[str] = None
    shipViaProvider: Optional[str] = None
    shipViaProviderName: Optional[str] = None
    shipmentTypeDescription: Optional[str] = None

    class Config:
        populate_by_name = True


class CartonContentRecord(BaseModel):
    """One content line of a carton.

    Exactly one subject is populated: jobPart (paired with jobPartJob),
    jobComponent, jobProduct, or job.
    """
    id: str
    carton: Optional[str] = None
    quantity: Optional[float] = None
    contentDescription: Optional[str] = None
    job: Optional[str] = None
    jobComponent: Optional[str] = None
    jobProduct: Optional[str] = None
    jobPart: Optional[str] = None
    jobPartJob: Optional[str] = None

    # Enrichment
    jobDescription: Optional[str] = None
    jobComponentDescription: Optional[str] = None
    jobComponentItemNumber: Optional[str] = None
    jobComponentPO: Optional[str] = None
    jobProductDescription: Optional[str] = None
    jobPartDescription: Optional[str] = None

    @property
    def subject_kind(self) -> Optional[ObjectType]:
        if self.jobPart:
            return ObjectType.JOB_PART
        if self.jobComponent:
            return ObjectType.JOB_COMPONENT
        if self.jobProduct:
            return ObjectType.JOB_PRODUCT
        if self.job:
            return ObjectType.JOB
        return None

    @property
    def job_part_key(self) -> Optional[str]:
        """Composite JobPart primary key ("job:part")."""
        if self.jobPart and self.jobPartJob:
            return f"{self.jobPartJob}:{self.jobPart}"
        return None


class CartonRecord(BaseModel):
    """A carton with its enriched content lines."""
    id: str
    shipment: Optional[str] = None
    trackingNumber: Optional[str] = None
    weight: Optional[float] = None
    note: Optional[str] = None
    contents: List[CartonContentRecord] = Field(default_factory=list)


class LookupRecord(PipelineModel):
    """A resolved reference (job, customer, ship via, ...)."""
    type: str
    id: str
    name: Optional[str] = None
    display_name: str
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw(cls, object_type: ObjectType, primary_key: str, raw: Dict[str, Any]) -> "LookupRecord":
        name = lookup_display_name(object_type, raw)
        return cls(
            type=object_type.value,
            id=str(primary_key),
            name=name,
            display_name=name or f"{object_type.value} {primary_key}",
            raw=raw,
        )


def lookup_display_name(object_type: ObjectType, raw: Optional[Dict[str, Any]]) -> Optional[str]:
    """Human-readable name of a looked-up object, or None."""
    if not raw:
        return None
    for field_name in DISPLAY_NAME_FIELDS.get(object_type, ()):
        value = raw.get(field_name)
        if value not in (None, ""):
            return str(value)
    return None


# =============================================================================
# Diagnostics and pages
# =============================================================================

class PipelineDiagnostics(PipelineModel):
    """Partial failures of one pipeline invocation.

    ``corrupted_ids`` lists every id that hit the corruption signature on
    the first pass, recovered or not. ``recovered_ids`` is the subset that
    read cleanly on retry, and ``failed_ids`` holds the rest, which hit the
    signature twice. A recovered id is never listed in ``failed_ids``.
    """
    fetch_errors: List[str] = Field(default_factory=list)
    json_errors: List[str] = Field(default_factory=list)
    corrupted_ids: List[str] = Field(default_factory=list)
    recovered_ids: List[str] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    skipped_by_date: int = 0
    enrichment_misses: Dict[str, List[str]] = Field(default_factory=dict)
    dropped_contents: int = 0

    def record_enrichment_miss(self, lookup_type: str, primary_key: str) -> None:
        misses = self.enrichment_misses.setdefault(lookup_type, [])
        if primary_key not in misses:
            misses.append(primary_key)

    @property
    def enrichment_miss_count(self) -> int:
        return sum(len(ids) for ids in self.enrichment_misses.values())


class ShipmentPage(PipelineModel):
    """One page of search results.

    ``total`` and ``has_more`` are estimates: PACE cannot count matches, so
    total is ``len(items) + (page - 1) * page_size`` and has_more means the
    page came back full.
    """
    items: List[ShipmentRecord]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)


class CartonContentRequest(PipelineModel):
    """A new carton content line.

    A job part is given either as ``job_part`` plus ``job`` or as the
    composite ``job_part="112823:02"``. Otherwise ``job`` alone is the
    subject.
    """
    quantity: float = Field(..., ge=0)
    description: Optional[str] = None
    job: Optional[str] = None
    job_component: Optional[str] = None
    job_product: Optional[str] = None
    job_part: Optional[str] = None

    @field_validator("job", "job_component", "job_product", "job_part", mode="before")
    @classmethod
    def _reference_to_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(int(value))
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode="after")
    def _single_subject(self):
        specific = [v for v in (self.job_part, self.job_component, self.job_product) if v]
        if len(specific) > 1:
            raise ValueError("Only one of jobPart, jobComponent, jobProduct may be set")
        if not specific and not self.job:
            raise ValueError("A carton content line needs a job, jobComponent, jobProduct or jobPart")
        if self.job_part and ":" not in self.job_part and not self.job:
            raise ValueError("jobPart requires the job it belongs to")
        if self.job and (self.job_component or self.job_product):
            raise ValueError("job cannot be combined with jobComponent or jobProduct")
        return self
