"""Tests for filter validation and query translation."""

from datetime import date, datetime, timedelta, timezone

import pytest

from shipment_pipeline.errors import ErrorKind, FilterValidationError
from shipment_pipeline.models import ShipmentFilter
from shipment_pipeline.query import (
    FALLBACK_QUERY,
    SHIPPED_PREFILTER,
    date_bounds,
    quote_value,
    translate_filter,
    within_bounds,
)


class TestShipmentFilter:
    """Caller input validation."""

    def test_blank_values_become_none(self):
        """Whitespace-only job and customer are treated as absent."""
        f = ShipmentFilter.build(job="  ", customer="")
        assert f.job is None
        assert f.customer is None

    def test_camel_case_aliases(self):
        """Filters accept the camelCase names used by the HTTP surface."""
        f = ShipmentFilter.model_validate({"startDate": "2025-10-01", "pageSize": 50})
        assert f.start_date == date(2025, 10, 1)
        assert f.page_size == 50

    def test_numeric_job_is_text(self):
        """A job number given as int is stored as a string."""
        assert ShipmentFilter.build(job=112823).job == "112823"

    def test_inverted_range_rejected(self):
        """startDate after endDate is a validation error."""
        with pytest.raises(FilterValidationError) as exc:
            ShipmentFilter.build(start_date=date(2025, 10, 2), end_date=date(2025, 10, 1))
        assert exc.value.kind == ErrorKind.VALIDATION_ERROR
        assert exc.value.status_code == 422

    def test_page_bounds(self):
        """page >= 1 and pageSize within 1..100."""
        with pytest.raises(FilterValidationError):
            ShipmentFilter.build(page=0)
        with pytest.raises(FilterValidationError):
            ShipmentFilter.build(page_size=101)

    def test_quote_in_job_rejected(self):
        """Single quotes cannot be escaped in the query language."""
        with pytest.raises(FilterValidationError):
            ShipmentFilter.build(job="11'28")


class TestTranslateFilter:
    """Filter to FindObjects query."""

    def test_job_only(self):
        """A job compiles to a quoted equality clause."""
        q = translate_filter(ShipmentFilter(job="112823"))
        assert q.xpath == "@job = '112823'"
        assert q.defer_date_filter is False

    def test_dates_use_shipped_prefilter(self):
        """Date ranges add the shipped-only pre-filter and stay deferred."""
        q = translate_filter(ShipmentFilter(start_date=date(2025, 10, 1)))
        assert q.xpath == SHIPPED_PREFILTER
        assert q.defer_date_filter is True

    def test_job_and_dates(self):
        """Clauses are joined with 'and'."""
        q = translate_filter(ShipmentFilter(job="112823", end_date=date(2025, 10, 1)))
        assert q.xpath == "@job = '112823' and @date != ''"

    def test_prefilter_disabled(self):
        """Without the pre-filter a date-only search falls back to all ids."""
        q = translate_filter(ShipmentFilter(start_date=date(2025, 10, 1)), use_shipped_prefilter=False)
        assert q.xpath == FALLBACK_QUERY
        assert q.defer_date_filter is True

    def test_no_filter_fallback(self):
        """No criteria selects every positive id."""
        assert translate_filter(ShipmentFilter()).xpath == "@id > 0"

    def test_customer_is_never_compiled(self):
        """Customer matching always happens after enrichment."""
        q = translate_filter(ShipmentFilter(customer="Acme"))
        assert "customer" not in q.xpath
        assert q.defer_customer_filter is True

    def test_quote_value(self):
        assert quote_value("112823") == "'112823'"
        with pytest.raises(FilterValidationError):
            quote_value("a'b")


class TestDateBounds:
    """Calendar days in the display time zone."""

    def test_bounds_cover_whole_days(self):
        """Start is local midnight, end is the last microsecond of the end day."""
        f = ShipmentFilter(start_date=date(2025, 10, 1), end_date=date(2025, 10, 1))
        start, end = date_bounds(f, "America/Los_Angeles")
        # PDT is UTC-7 in October
        assert start.astimezone(timezone.utc) == datetime(2025, 10, 1, 7, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1) - timedelta(microseconds=1)

    def test_open_ended(self):
        start, end = date_bounds(ShipmentFilter(end_date=date(2025, 10, 1)), "UTC")
        assert start is None
        assert end == datetime(2025, 10, 1, 23, 59, 59, 999999, tzinfo=end.tzinfo)

    def test_within_bounds(self):
        """Inclusive bounds; undated records fail any bounded range."""
        start = datetime(2025, 10, 1, tzinfo=timezone.utc)
        end = datetime(2025, 10, 2, tzinfo=timezone.utc)
        assert within_bounds(start, start, end)
        assert within_bounds(end, start, end)
        assert not within_bounds(end + timedelta(seconds=1), start, end)
        assert not within_bounds(None, start, None)
        assert within_bounds(None, None, None)
