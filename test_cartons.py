"""Tests for carton loading, content enrichment and content payloads."""

import asyncio

import pytest
from pydantic import ValidationError

from connectors.pace.pace_client import PaceApiError
from shipment_pipeline.cartons import build_content_payload
from shipment_pipeline.errors import FilterValidationError, UpstreamQueryFailed
from shipment_pipeline.models import CartonContentRequest, PipelineDiagnostics


def seed_cartons(store):
    store.on_find("Carton", "@shipment=4711", [10, 11])
    store.add("Carton", {"id": 10, "shipment": 4711, "trackingNumber": "1Z999", "weight": 12.5})
    store.add("Carton", {"id": 11, "shipment": 4711})
    store.on_find("CartonContent", "@carton=10", [100, 101, 102])
    store.on_find("CartonContent", "@carton=11", [110])
    store.add("CartonContent", {"id": 100, "carton": 10, "quantity": 500, "jobPart": "112823:02"})
    store.add("CartonContent", {"id": 101, "carton": 10, "quantity": 20, "jobComponent": 31})
    store.add("CartonContent", {"id": 102, "carton": 10, "quantity": 1, "job": "112823"})
    store.add("CartonContent", {"id": 110, "carton": 11, "quantity": 3, "jobProduct": 41})
    store.add("Job", {"job": "112823", "description": "Spring catalog"}, key="112823")
    store.add("JobPart", {"description": "Cover"}, key="112823:02")
    store.add("JobComponent", {"description": "Text", "u_itemNumber": "IT-9", "u_po": "PO-1"}, key="31")
    store.add("JobProduct", {"description": "Catalog"}, key="41")


class TestGetCartons:
    """FIND cartons -> READ -> FIND contents -> READ -> enrich."""

    def test_cartons_with_enriched_contents(self, service, store):
        seed_cartons(store)

        cartons = asyncio.run(service.get_cartons("4711"))

        assert [c.id for c in cartons] == ["10", "11"]
        first, second = cartons
        assert first.trackingNumber == "1Z999"
        assert [c.id for c in first.contents] == ["100", "101", "102"]

        part, component, job = first.contents
        assert part.jobPartJob == "112823"
        assert part.jobPart == "02"
        assert part.jobPartDescription == "Cover"
        assert component.jobComponentDescription == "Text"
        assert component.jobComponentItemNumber == "IT-9"
        assert component.jobComponentPO == "PO-1"
        assert job.jobDescription == "Spring catalog"
        assert second.contents[0].jobProductDescription == "Catalog"

    def test_no_cartons(self, service, store):
        assert asyncio.run(service.get_cartons("4711")) == []

    def test_unreadable_carton_dropped(self, service, store):
        seed_cartons(store)
        store.fail_read("Carton", "11", PaceApiError("boom", 500, ""))
        cartons = asyncio.run(service.get_cartons("4711"))
        assert [c.id for c in cartons] == ["10"]

    def test_content_listing_failure_keeps_carton(self, service, store):
        seed_cartons(store)
        original = store.find_objects

        async def flaky_find(object_type, xpath, offset=0, limit=1000, sort=None):
            if xpath == "@carton=10":
                raise PaceApiError("boom", 500, "")
            return await original(object_type, xpath, offset, limit, sort)

        store.find_objects = flaky_find
        cartons = asyncio.run(service.get_cartons("4711"))

        assert [c.id for c in cartons] == ["10", "11"]
        assert cartons[0].contents == []
        assert len(cartons[1].contents) == 1

    def test_dropped_contents_counted(self, service, store):
        seed_cartons(store)
        store.fail_read("CartonContent", "101", PaceApiError("boom", 500, ""))
        store.add("CartonContent", {"id": 102, "carton": 10, "quantity": 1})
        diagnostics = PipelineDiagnostics()

        cartons = asyncio.run(service.get_cartons("4711", diagnostics))

        assert [c.id for c in cartons[0].contents] == ["100"]
        assert diagnostics.dropped_contents == 2

    def test_missing_description_is_a_miss(self, service, store):
        seed_cartons(store)
        del store.objects["JobPart"]["112823:02"]
        diagnostics = PipelineDiagnostics()

        cartons = asyncio.run(service.get_cartons("4711", diagnostics))

        assert cartons[0].contents[0].jobPartDescription is None
        assert diagnostics.enrichment_misses == {"JobPart": ["112823:02"]}

    def test_carton_find_failure(self, service, store):
        store.fail_find("Carton", PaceApiError("boom", 500, "down"))
        with pytest.raises(UpstreamQueryFailed):
            asyncio.run(service.get_cartons("4711"))

    def test_non_numeric_shipment(self, service):
        with pytest.raises(FilterValidationError):
            asyncio.run(service.get_cartons("4711 or 1"))


class TestContentPayload:
    """CREATE CartonContent bodies."""

    def test_composite_part(self):
        payload = build_content_payload("77", CartonContentRequest(quantity=2.0, job_part="112823:02"))
        assert payload == {"carton": 77, "quantity": 2, "jobPartJob": "112823", "jobPart": "02"}

    def test_component_is_numeric(self):
        payload = build_content_payload("77", CartonContentRequest(quantity=1.5, job_component="31"))
        assert payload == {"carton": 77, "quantity": 1.5, "jobComponent": 31}

    def test_job_only(self):
        payload = build_content_payload("77", CartonContentRequest(quantity=1, job=112823, description="Samples"))
        assert payload == {"carton": 77, "quantity": 1, "job": "112823", "contentDescription": "Samples"}

    @pytest.mark.parametrize("fields", [
        {"quantity": 1},
        {"quantity": 1, "job_part": "02"},
        {"quantity": 1, "job_component": "1", "job_product": "2"},
        {"quantity": 1, "job": "1", "job_component": "2"},
        {"quantity": -1, "job": "1"},
    ])
    def test_invalid_requests(self, fields):
        with pytest.raises(ValidationError):
            CartonContentRequest(**fields)
