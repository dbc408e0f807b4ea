"""PACE object envelopes.

PACE returns duck-typed JSON: optional fields everywhere, references as
ints or strings, and ``description`` sometimes as a list of lines. These
envelopes accept that shape as-is (unknown fields are kept) so the pipeline
can validate once at the boundary and then build strict records.
"""

from typing import Any

from pydantic import BaseModel


class PaceBaseModel(BaseModel):
    """Base envelope for PACE objects."""

    class Config:
        populate_by_name = True
        extra = "allow"


class PaceJobShipment(PaceBaseModel):
    """JobShipment as returned by ReadObject/readJobShipment."""
    id: Any = None
    job: Any = None
    jobPart: Any = None
    shipVia: Any = None
    shipmentType: Any = None
    dateTime: Any = None
    date: Any = None
    shipDate: Any = None
    description: Any = None
    trackingNumber: Any = None
    quantity: Any = None
    cost: Any = None
    charge: Any = None


class PaceCarton(PaceBaseModel):
    """Carton as returned by ReadObject/readCarton."""
    id: Any = None
    shipment: Any = None
    trackingNumber: Any = None
    weight: Any = None
    note: Any = None


class PaceCartonContent(PaceBaseModel):
    """CartonContent as returned by ReadObject/readCartonContent.

    ``jobPart`` is either the bare part number (with ``jobPartJob`` holding
    the job) or the composite key "job:part".
    """
    id: Any = None
    carton: Any = None
    quantity: Any = None
    contentDescription: Any = None
    job: Any = None
    jobComponent: Any = None
    jobProduct: Any = None
    jobPart: Any = None
    jobPartJob: Any = None
