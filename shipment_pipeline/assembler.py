"""Result assembly: customer filter, date sort, pagination.

PACE cannot count matches, so page totals are synthesized:

    total       = len(items) + (page - 1) * page_size
    has_more    = len(items) == page_size
    total_pages = page + 1 if has_more else page

Server-side pages (ShipmentService.search) and client-side pages
(ShipmentResultSet.page) both go through paginate(), so they are identical
for the same filter and page.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from shipment_pipeline.models import PipelineDiagnostics, ShipmentPage, ShipmentRecord


def filter_by_customer(records: List[ShipmentRecord], customer: Optional[str]) -> List[ShipmentRecord]:
    """Case-insensitive substring match on customerName, falling back to customer."""
    if not customer:
        return list(records)
    needle = customer.strip().casefold()
    return [
        r for r in records
        if needle in _customer_text(r).casefold()
    ]


def _customer_text(record: ShipmentRecord) -> str:
    # An empty enriched name does not fall back to the raw customer id
    if record.customerName is not None:
        return record.customerName
    return record.customer or ""


def _date_sort_key(record: ShipmentRecord):
    if record.dateTime is None:
        return (1, 0.0)
    return (0, -record.dateTime.timestamp())


def sort_shipments(records: List[ShipmentRecord]) -> List[ShipmentRecord]:
    """Newest ship date first; undated shipments last, in their given order."""
    return sorted(records, key=_date_sort_key)


def paginate(
    records: List[ShipmentRecord],
    page: int,
    page_size: int,
    diagnostics: Optional[PipelineDiagnostics] = None,
) -> ShipmentPage:
    """Slice one page out of a sorted result list."""
    start = (page - 1) * page_size
    items = records[start:start + page_size]
    has_more = len(items) == page_size
    return ShipmentPage(
        items=items,
        total=len(items) + (page - 1) * page_size,
        page=page,
        page_size=page_size,
        total_pages=page + 1 if has_more else page,
        has_more=has_more,
        diagnostics=diagnostics if diagnostics is not None else PipelineDiagnostics(),
    )


@dataclass
class ShipmentResultSet:
    """The full filtered, enriched and sorted result of one search.

    Held by callers that re-slice pages themselves.
    """
    items: List[ShipmentRecord] = field(default_factory=list)
    diagnostics: PipelineDiagnostics = field(default_factory=PipelineDiagnostics)

    def __len__(self) -> int:
        return len(self.items)

    def page(self, page: int, page_size: int) -> ShipmentPage:
        return paginate(self.items, page, page_size, self.diagnostics)


def assemble(
    records: List[ShipmentRecord],
    customer: Optional[str],
    diagnostics: PipelineDiagnostics,
) -> ShipmentResultSet:
    """Apply the customer filter and the date sort."""
    return ShipmentResultSet(
        items=sort_shipments(filter_by_customer(records, customer)),
        diagnostics=diagnostics,
    )
