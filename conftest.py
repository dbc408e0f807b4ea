"""Shared test fixtures.

FakeObjectStore stands in for PACE: objects live in memory, every call is
recorded, and reads can be scripted to fail per id.
"""

import asyncio
import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import pytest

from connectors.erp_base import ObjectStore, SortSpec
from connectors.pace.pace_auth import PaceCredentials, StaticCredentialsProvider
from connectors.pace.pace_client import PaceApiError, PaceNotFoundError
from core.config import PaceSettings
from core.observability.metrics import MetricsCollector
from shipment_pipeline.cache import ShipmentResultCache
from shipment_pipeline.service import ShipmentService

CORRUPTION_BODY = (
    '{"message": "java.lang.ClassCastException: class java.util.ArrayList cannot be cast '
    'to class java.lang.String (field description)"}'
)


def corruption_error(primary_key: str) -> PaceApiError:
    return PaceApiError(f"API error 500 for {primary_key}", 500, CORRUPTION_BODY)


class FakeObjectStore(ObjectStore):
    """In-memory ObjectStore recording FIND/READ/CREATE calls."""

    def __init__(self):
        self.objects: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.queries: Dict[tuple, List[str]] = {}
        self.read_failures: Dict[tuple, List[Exception]] = defaultdict(list)
        self.find_failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.created: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    # Setup helpers

    def add(self, object_type: str, body: Dict[str, Any], key: Optional[str] = None) -> str:
        key = str(key if key is not None else body["id"])
        self.objects[object_type][key] = body
        return key

    def on_find(self, object_type: str, xpath: str, ids: Sequence[Any]) -> None:
        self.queries[(object_type, xpath)] = [str(i) for i in ids]

    def fail_read(self, object_type: str, key: str, *errors: Exception) -> None:
        """Queue errors for the next reads of one key, consumed in order."""
        self.read_failures[(object_type, str(key))].extend(errors)

    def fail_find(self, object_type: str, error: Exception) -> None:
        self.find_failures[object_type] = error

    # Inspection helpers

    def reads(self, object_type: Optional[str] = None) -> List[str]:
        return [
            call[2] for call in self.calls
            if call[0] == "read" and (object_type is None or call[1] == object_type)
        ]

    def finds(self, object_type: Optional[str] = None) -> List[tuple]:
        return [
            call for call in self.calls
            if call[0] == "find" and (object_type is None or call[1] == object_type)
        ]

    # ObjectStore

    async def find_objects(
        self,
        object_type: str,
        xpath: str,
        offset: int = 0,
        limit: int = 1000,
        sort: Optional[Sequence[SortSpec]] = None,
    ) -> List[str]:
        self.calls.append(("find", object_type, xpath, offset, limit, list(sort or [])))
        await asyncio.sleep(0)
        if object_type in self.find_failures:
            raise self.find_failures[object_type]
        if (object_type, xpath) in self.queries:
            ids = self.queries[(object_type, xpath)]
        else:
            ids = list(self.objects[object_type].keys())
        return ids[offset:offset + limit]

    async def read_object(self, object_type: str, primary_key: str) -> Dict[str, Any]:
        self.calls.append(("read", object_type, primary_key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            queued = self.read_failures.get((object_type, primary_key))
            if queued:
                raise queued.pop(0)
            if primary_key not in self.objects[object_type]:
                raise PaceNotFoundError(f"Object not found: {object_type} {primary_key}", 404, "")
            return copy.deepcopy(self.objects[object_type][primary_key])
        finally:
            self.in_flight -= 1

    async def create_object(self, object_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("create", object_type, payload))
        created = {"id": 9000 + len(self.created), **payload}
        self.created.append(created)
        self.objects[object_type][str(created["id"])] = created
        return created

    async def close(self) -> None:
        self.closed = True


class ManualClock:
    """Clock for TTL tests; advance() moves time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def settings() -> PaceSettings:
    return PaceSettings(
        api_url="https://pace.test/rpc/rest/services",
        username="svc-shipments",
        password="secret",
        display_timezone="America/Los_Angeles",
        fetch_batch_size=50,
    )


@pytest.fixture
def credentials_provider() -> StaticCredentialsProvider:
    return StaticCredentialsProvider(
        PaceCredentials(
            url="https://pace.test/rpc/rest/services",
            username="svc-shipments",
            password="secret",
        )
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def cache(clock) -> ShipmentResultCache:
    return ShipmentResultCache(ttl_seconds=300, max_entries=64, clock=clock)


@pytest.fixture
def service(store, settings, cache, metrics) -> ShipmentService:
    return ShipmentService(store, settings=settings, cache=cache, metrics=metrics)
