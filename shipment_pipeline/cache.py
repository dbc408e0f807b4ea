"""Search result cache.

A bounded TTL store keyed by a filter fingerprint. A hit short-circuits the
whole pipeline; entries older than the TTL read as misses and are evicted.
The clock is injectable so tests can expire entries without sleeping.

Reads and writes are not locked: two requests racing on the same
fingerprint compute and store equal values.
"""

import time
from typing import Any, Callable, Optional

from cachetools import TTLCache

from shipment_pipeline.models import ShipmentFilter

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 256

FINGERPRINT_PREFIX = "shipments"


def _part(value: Any) -> str:
    return "" if value is None else str(value)


def fingerprint(shipment_filter: ShipmentFilter, page: Optional[int] = None) -> str:
    """Deterministic cache key for a filter and page.

    Format: shipments:{start}:{end}:{job}:{customer}:{page}:{pageSize}.
    The customer is trimmed and case-folded since matching ignores case.
    """
    customer = shipment_filter.customer.strip().casefold() if shipment_filter.customer else None
    page_value = shipment_filter.page if page is None else page
    return ":".join([
        FINGERPRINT_PREFIX,
        _part(shipment_filter.start_date),
        _part(shipment_filter.end_date),
        _part(shipment_filter.job),
        _part(customer),
        _part(page_value),
        _part(shipment_filter.page_size),
    ])


def result_set_fingerprint(shipment_filter: ShipmentFilter) -> str:
    """Cache key for the full, unpaginated result set of a filter."""
    customer = shipment_filter.customer.strip().casefold() if shipment_filter.customer else None
    return ":".join([
        FINGERPRINT_PREFIX,
        _part(shipment_filter.start_date),
        _part(shipment_filter.end_date),
        _part(shipment_filter.job),
        _part(customer),
        "all",
    ])


class ShipmentResultCache:
    """TTL cache for search pages and result sets.

    Usage:
        cache = ShipmentResultCache(ttl_seconds=300)
        key = fingerprint(shipment_filter)
        page = cache.get(key)
        if page is None:
            page = ...
            cache.set(key, page)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._entries = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=clock)

    def get(self, key: str) -> Optional[Any]:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, key: Optional[str] = None) -> int:
        """Drop one entry, or everything when key is None.

        Returns:
            Number of entries removed
        """
        if key is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        return 1 if self._entries.pop(key, None) is not None else 0

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix."""
        removed = 0
        for key in tuple(self._entries.keys()):
            if key.startswith(prefix):
                self._entries.pop(key, None)
                removed += 1
        return removed

    def __len__(self) -> int:
        # Expired entries are purged on access
        self._entries.expire()
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
