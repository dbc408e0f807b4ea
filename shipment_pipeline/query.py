"""Query translation.

PACE's FindObjects accepts only attribute equality/inequality joined with
``and``. Timestamp comparison on ``@dateTime`` does not work, so date
ranges are never compiled into the query; they are applied client-side
after each record is read.

One upstream quirk is used as an optional pre-filter: ``@date`` behaves
inverted, so ``@date != ''`` returns only shipments that have shipped.
It shrinks the candidate set and is never the only date filter.
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from shipment_pipeline.errors import FilterValidationError
from shipment_pipeline.models import ShipmentFilter

SHIPPED_PREFILTER = "@date != ''"
FALLBACK_QUERY = "@id > 0"

END_OF_DAY = time(23, 59, 59, 999999)


@dataclass(frozen=True)
class TranslatedQuery:
    """An upstream query plus what is left for the client to filter."""
    xpath: str
    defer_date_filter: bool = False
    defer_customer_filter: bool = False


def quote_value(value: str) -> str:
    """Quote a value for an equality clause.

    Raises:
        FilterValidationError: The value contains a single quote, which the
            query language cannot escape
    """
    if "'" in value:
        raise FilterValidationError(
            "Query values must not contain a single quote",
            details={"value": value},
        )
    return f"'{value}'"


def translate_filter(
    shipment_filter: ShipmentFilter,
    use_shipped_prefilter: bool = True,
) -> TranslatedQuery:
    """Compile a filter into a FindObjects query.

    Examples:
        {job: "112823"}             -> "@job = '112823'"
        {job: "112823", dates}      -> "@job = '112823' and @date != ''"
        {dates}                     -> "@date != ''"
        {}                          -> "@id > 0"
    """
    clauses = []

    if shipment_filter.job:
        clauses.append(f"@job = {quote_value(shipment_filter.job)}")

    if shipment_filter.has_date_bounds and use_shipped_prefilter:
        clauses.append(SHIPPED_PREFILTER)

    xpath = " and ".join(clauses) if clauses else FALLBACK_QUERY

    return TranslatedQuery(
        xpath=xpath,
        defer_date_filter=shipment_filter.has_date_bounds,
        defer_customer_filter=shipment_filter.customer is not None,
    )


def date_bounds(
    shipment_filter: ShipmentFilter,
    timezone_name: str,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Absolute instants for the filter's calendar days.

    The start is midnight of start_date and the end is the last microsecond
    of end_date, both in the display time zone.
    """
    tz = ZoneInfo(timezone_name)
    start = end = None
    if shipment_filter.start_date:
        start = datetime.combine(shipment_filter.start_date, time.min, tzinfo=tz)
    if shipment_filter.end_date:
        end = datetime.combine(shipment_filter.end_date, END_OF_DAY, tzinfo=tz)
    return start, end


def within_bounds(
    value: Optional[datetime],
    start: Optional[datetime],
    end: Optional[datetime],
) -> bool:
    """Whether a normalized ship date falls inside [start, end].

    With any bound set, a missing date means "not shipped" and is excluded.
    """
    if start is None and end is None:
        return True
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True
