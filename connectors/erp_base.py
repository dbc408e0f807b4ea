"""Abstract ERP Object Store Interface.

This module defines the generic object API the shipment pipeline talks to.
It is intentionally ERP-agnostic - no PACE URL shapes or auth details here.

The upstream system is modelled as a store of named object types that only
supports:
1. FIND: attribute query -> ordered list of opaque primary keys
2. READ: primary key -> full object body
3. CREATE: payload -> created object body

Key Design Principles:
- The pipeline depends ONLY on ObjectStore, so tests substitute an in-memory store
- Concrete connectors register themselves with @register_connector
- Raw object bodies are plain dicts; normalization happens in the pipeline
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


# =============================================================================
# Object Types
# =============================================================================

class ObjectType(str, Enum):
    """Upstream object types used by the shipment pipeline."""
    JOB_SHIPMENT = "JobShipment"
    CARTON = "Carton"
    CARTON_CONTENT = "CartonContent"
    JOB = "Job"
    JOB_COMPONENT = "JobComponent"
    JOB_PRODUCT = "JobProduct"
    JOB_PART = "JobPart"
    CUSTOMER = "Customer"
    SHIP_VIA = "ShipVia"
    SHIP_PROVIDER = "ShipProvider"
    SHIPMENT_TYPE = "ShipmentType"
    SALES_PERSON = "SalesPerson"
    CONTACT = "Contact"


# Field holding the human-readable name, per lookup type.
# Customer falls back through the tuple in order.
DISPLAY_NAME_FIELDS: Dict[ObjectType, tuple] = {
    ObjectType.SHIP_VIA: ("description",),
    ObjectType.SHIPMENT_TYPE: ("description",),
    ObjectType.SHIP_PROVIDER: ("name",),
    ObjectType.JOB: ("description",),
    ObjectType.CUSTOMER: ("custName", "name"),
    ObjectType.SALES_PERSON: ("name",),
    ObjectType.CONTACT: ("companyName",),
    ObjectType.JOB_COMPONENT: ("description",),
    ObjectType.JOB_PRODUCT: ("description",),
    ObjectType.JOB_PART: ("description",),
}

# Lookup types whose primary key is a plain integer
NUMERIC_KEY_TYPES = frozenset({
    ObjectType.SHIP_VIA,
    ObjectType.SHIPMENT_TYPE,
    ObjectType.SHIP_PROVIDER,
    ObjectType.SALES_PERSON,
    ObjectType.CONTACT,
    ObjectType.JOB_COMPONENT,
    ObjectType.JOB_PRODUCT,
})

LOOKUP_TYPES = frozenset(DISPLAY_NAME_FIELDS.keys())


@dataclass(frozen=True)
class SortSpec:
    """One sort key for a FIND call."""
    xpath: str
    descending: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"xpath": self.xpath, "descending": self.descending}


# Identifier descending is the only ordering the upstream sorts reliably
ID_DESCENDING = SortSpec("@id", descending=True)


# =============================================================================
# Abstract Object Store
# =============================================================================

class ObjectStore(ABC):
    """Abstract base class for the upstream object API.

    Implementations:
    - connectors/pace/pace_client.py
    - conftest.FakeObjectStore (tests)

    Errors are reported with connector exceptions that expose
    ``status_code`` and ``response_body`` attributes.
    """

    @abstractmethod
    async def find_objects(
        self,
        object_type: str,
        xpath: str,
        offset: int = 0,
        limit: int = 1000,
        sort: Optional[Sequence[SortSpec]] = None,
    ) -> List[str]:
        """Find primary keys of objects matching an attribute query.

        Args:
            object_type: Upstream type name (e.g. "JobShipment")
            xpath: Attribute query (e.g. "@job = '112823'")
            offset: Number of matches to skip
            limit: Maximum number of keys to return
            sort: Sort keys applied upstream before offset/limit

        Returns:
            Primary keys as strings, in upstream order
        """
        pass

    @abstractmethod
    async def read_object(self, object_type: str, primary_key: str) -> Dict[str, Any]:
        """Read one object body by primary key."""
        pass

    @abstractmethod
    async def create_object(self, object_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object and return the stored body."""
        pass

    async def close(self) -> None:
        """Release any network resources."""
        return None


# =============================================================================
# Connector Factory
# =============================================================================

_connector_registry: Dict[str, type] = {}


def register_connector(connector_type: str):
    """Decorator to register an object store implementation."""
    def decorator(cls):
        _connector_registry[connector_type] = cls
        return cls
    return decorator


def create_object_store(connector_type: str, *args, **kwargs) -> ObjectStore:
    """Create an object store instance by registered name.

    Raises:
        ValueError: If connector_type is not registered
    """
    key = connector_type.lower()

    if key not in _connector_registry:
        available = list(_connector_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    return _connector_registry[key](*args, **kwargs)


def list_available_connectors() -> List[str]:
    """List all registered connector types."""
    return list(_connector_registry.keys())
