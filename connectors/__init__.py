"""ERP Connectors - Upstream object store integrations.

This package contains the abstract object-store interface and the concrete
PACE implementation. The shipment pipeline depends ONLY on ObjectStore:
- FIND returns primary keys, never bodies
- READ returns the raw object body as a dict
- CREATE posts a payload and returns the stored body

To add a new upstream:
1. Create a new folder (e.g., pace/)
2. Implement the ObjectStore interface
3. Register using @register_connector decorator
"""

from connectors.erp_base import (
    ObjectStore,
    ObjectType,
    SortSpec,
    ID_DESCENDING,
    DISPLAY_NAME_FIELDS,
    NUMERIC_KEY_TYPES,
    LOOKUP_TYPES,
    create_object_store,
    register_connector,
    list_available_connectors,
)

# Registers the "pace" connector
from connectors import pace  # noqa: F401

__all__ = [
    # Core interface
    "ObjectStore",
    "ObjectType",
    "SortSpec",
    "ID_DESCENDING",

    # Lookup registry
    "DISPLAY_NAME_FIELDS",
    "NUMERIC_KEY_TYPES",
    "LOOKUP_TYPES",

    # Factory
    "create_object_store",
    "register_connector",
    "list_available_connectors",
]
