"""Tests for result assembly and pagination."""

from datetime import datetime, timedelta, timezone

import pytest

from shipment_pipeline.assembler import (
    ShipmentResultSet,
    assemble,
    filter_by_customer,
    paginate,
    sort_shipments,
)
from shipment_pipeline.models import PipelineDiagnostics, ShipmentRecord

BASE = datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)


def dated(count):
    return [
        ShipmentRecord(id=str(i), dateTime=BASE - timedelta(hours=i))
        for i in range(count)
    ]


class TestPaginate:
    """Synthesized totals."""

    @pytest.mark.parametrize("count,page,page_size,expected", [
        # (items on page, total, has_more, total_pages)
        (45, 1, 20, (20, 20, True, 2)),
        (45, 2, 20, (20, 40, True, 3)),
        (45, 3, 20, (5, 45, False, 3)),
        (40, 2, 20, (20, 40, True, 3)),
        (10, 4, 20, (0, 60, False, 4)),
    ])
    def test_formulas(self, count, page, page_size, expected):
        result = paginate(dated(count), page, page_size)
        assert (len(result.items), result.total, result.has_more, result.total_pages) == expected

    def test_client_and_server_pages_match(self):
        """Re-slicing a result set gives the same page as a direct search."""
        records = sort_shipments(dated(33))
        result_set = ShipmentResultSet(items=records)
        for page in (1, 2, 3):
            assert result_set.page(page, 15) == paginate(records, page, 15)

    def test_diagnostics_carried(self):
        diagnostics = PipelineDiagnostics(failed_ids=["7"])
        result = paginate([], 1, 20, diagnostics)
        assert result.diagnostics.failed_ids == ["7"]
        assert result.total_pages == 1


class TestSortAndFilter:

    def test_newest_first_undated_last(self):
        undated = ShipmentRecord(id="u")
        older = ShipmentRecord(id="o", dateTime=BASE - timedelta(days=1))
        newer = ShipmentRecord(id="n", dateTime=BASE)
        assert [r.id for r in sort_shipments([undated, older, newer])] == ["n", "o", "u"]

    def test_mixed_offsets_sort_by_instant(self):
        """Timestamps in different zones order by absolute time."""
        pacific = ShipmentRecord(id="p", dateTime=datetime(2025, 10, 1, 8, 0, tzinfo=timezone(timedelta(hours=-7))))
        utc = ShipmentRecord(id="u", dateTime=datetime(2025, 10, 1, 14, 0, tzinfo=timezone.utc))
        assert [r.id for r in sort_shipments([utc, pacific])] == ["p", "u"]

    def test_customer_substring_case_insensitive(self):
        records = [
            ShipmentRecord(id="1", customer="ACME", customerName="Acme Printing Co"),
            ShipmentRecord(id="2", customer="GLOBEX", customerName="Globex"),
            ShipmentRecord(id="3", customer="ACMEWEST"),
        ]
        assert [r.id for r in filter_by_customer(records, "acme")] == ["1", "3"]
        assert [r.id for r in filter_by_customer(records, " PRINTING ")] == ["1"]
        assert len(filter_by_customer(records, None)) == 3

    def test_unenriched_records_never_match(self):
        assert filter_by_customer([ShipmentRecord(id="1")], "acme") == []

    def test_empty_customer_name_does_not_fall_back(self):
        """Only a missing customerName falls back to the customer id."""
        records = [
            ShipmentRecord(id="1", customer="ACME", customerName=""),
            ShipmentRecord(id="2", customer="ACME"),
        ]
        assert [r.id for r in filter_by_customer(records, "acme")] == ["2"]

    def test_assemble(self):
        records = [
            ShipmentRecord(id="1", customerName="Acme", dateTime=BASE - timedelta(days=2)),
            ShipmentRecord(id="2", customerName="Acme", dateTime=BASE),
            ShipmentRecord(id="3", customerName="Globex", dateTime=BASE),
        ]
        result = assemble(records, "acme", PipelineDiagnostics())
        assert [r.id for r in result.items] == ["2", "1"]
        assert len(result) == 2
