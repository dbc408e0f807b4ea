"""Record normalization.

Turns raw PACE bodies into strict records:
- ``description`` given as a list of lines is joined with newlines
- the ship date falls back through dateTime -> date -> shipDate
- references (ints, floats, strings) become trimmed strings
- a composite jobPart key "112823:02" splits into job "112823" + part "02"
- carton content lines are reduced to exactly one subject
"""

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional, Tuple

from connectors.pace.pace_models import PaceCarton, PaceCartonContent, PaceJobShipment
from core.observability.logging import get_logger
from shipment_pipeline.models import CartonContentRecord, CartonRecord, ShipmentRecord

logger = get_logger(__name__)

DATE_FIELDS = ("dateTime", "date", "shipDate")

_TEXT_FIELDS = (
    "notes", "shipViaNote", "address1", "address2", "address3", "city",
    "state", "zip", "country", "contactFirstName", "contactLastName",
    "phone", "email", "trackingNumber",
)
_NUMBER_FIELDS = ("quantity", "cost", "charge")


def join_description(value: Any) -> Optional[str]:
    """Join a list-of-lines description into one string."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return "\n".join("" if line is None else str(line) for line in value)
    return str(value)


def reference(value: Any) -> Optional[str]:
    """Normalize a reference value to a string key (None when empty)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    key = str(value).strip()
    return key or None


def text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return join_description(value)
    return str(value)


def number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def split_composite_key(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """Split "job:part" into (job, part).

    A value without a colon is a bare part number: (None, part).
    """
    key = reference(value)
    if key is None:
        return None, None
    if ":" in key:
        job, _, part = key.partition(":")
        return (job.strip() or None), (part.strip() or None)
    return None, key


def pick_raw_date(raw: Dict[str, Any]) -> Any:
    """First populated ship-date field of a raw shipment."""
    for field_name in DATE_FIELDS:
        value = raw.get(field_name)
        if value not in (None, ""):
            return value
    return None


def parse_timestamp(value: Any, display_tz: tzinfo) -> Optional[datetime]:
    """Parse a PACE timestamp into an aware datetime.

    Numbers are epoch milliseconds. Strings are ISO 8601; naive values are
    read in the display time zone. Unparseable values yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = _parse_raw_timestamp(value)
        except (OverflowError, OSError, ValueError):
            logger.warning(
                "Unparseable ship date",
                extra_fields={"value": str(value)[:40]},
            )
            return None
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=display_tz)
    return parsed


def _parse_raw_timestamp(value: Any) -> Optional[datetime]:
    # Epoch values out of platform range raise OverflowError or OSError
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    raw = str(value).strip()
    if not raw:
        return None
    if raw.isdigit():
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def normalize_shipment(raw: Dict[str, Any], display_tz: tzinfo) -> ShipmentRecord:
    """Build a ShipmentRecord from a raw JobShipment body.

    Raises:
        pydantic.ValidationError: The body does not fit the envelope
        ValueError: The body has no id
    """
    envelope = PaceJobShipment.model_validate(raw)
    body = envelope.model_dump()

    shipment_id = reference(envelope.id)
    if shipment_id is None:
        raise ValueError("JobShipment body has no id")

    job = reference(envelope.job)
    part_job, job_part = split_composite_key(envelope.jobPart)
    if part_job and not job:
        job = part_job

    fields: Dict[str, Any] = {
        "id": shipment_id,
        "job": job,
        "jobPart": job_part,
        "shipVia": reference(envelope.shipVia),
        "shipmentType": reference(envelope.shipmentType),
        "dateTime": parse_timestamp(pick_raw_date(body), display_tz),
        "description": join_description(envelope.description),
    }
    for field_name in _TEXT_FIELDS:
        fields[field_name] = text(body.get(field_name))
    for field_name in _NUMBER_FIELDS:
        fields[field_name] = number(body.get(field_name))

    return ShipmentRecord(**fields)


def normalize_carton(raw: Dict[str, Any]) -> CartonRecord:
    envelope = PaceCarton.model_validate(raw)
    carton_id = reference(envelope.id)
    if carton_id is None:
        raise ValueError("Carton body has no id")
    return CartonRecord(
        id=carton_id,
        shipment=reference(envelope.shipment),
        trackingNumber=text(envelope.trackingNumber),
        weight=number(envelope.weight),
        note=text(envelope.note),
    )


def normalize_content(raw: Dict[str, Any]) -> Optional[CartonContentRecord]:
    """Build a content line with exactly one subject.

    Precedence when upstream fills several kinds:
    jobPart > jobComponent > jobProduct > job.

    Returns:
        The record, or None when the line references nothing
    """
    envelope = PaceCartonContent.model_validate(raw)
    content_id = reference(envelope.id)
    if content_id is None:
        raise ValueError("CartonContent body has no id")

    job = reference(envelope.job)
    part_job, job_part = split_composite_key(envelope.jobPart)
    job_part_job = reference(envelope.jobPartJob) or part_job
    if job_part and not job_part_job:
        # A bare part number pairs with the line's job
        job_part_job = job

    candidates = {
        "jobPart": job_part if job_part and job_part_job else None,
        "jobComponent": reference(envelope.jobComponent),
        "jobProduct": reference(envelope.jobProduct),
        "job": job,
    }
    populated = [name for name, value in candidates.items() if value]
    if not populated:
        return None

    subject = populated[0]
    # A jobPart line that also carries its own job is still a single subject
    extra = [name for name in populated[1:] if not (subject == "jobPart" and name == "job")]
    if extra:
        logger.warning(
            "Carton content references more than one subject",
            extra_fields={"content_id": content_id, "kept": subject, "ignored": extra},
        )

    fields: Dict[str, Any] = {
        "id": content_id,
        "carton": reference(envelope.carton),
        "quantity": number(envelope.quantity),
        "contentDescription": text(envelope.contentDescription),
    }
    if subject == "jobPart":
        fields["jobPart"] = job_part
        fields["jobPartJob"] = job_part_job
    else:
        fields[subject] = candidates[subject]

    return CartonContentRecord(**fields)
