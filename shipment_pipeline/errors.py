"""Shipment pipeline errors.

Only failures that abort a whole request are raised. Per-record problems
(fetch errors, corrupted records, enrichment misses) are collected in
PipelineDiagnostics and returned with the result instead.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Failure kinds surfaced to callers and logs."""
    UPSTREAM_QUERY_FAILED = "UpstreamQueryFailed"
    UPSTREAM_CREDENTIALS_MISSING = "UpstreamCredentialsMissing"
    RECORD_FETCH_ERROR = "RecordFetchError"
    RECORD_CORRUPTED = "RecordCorrupted"
    JSON_PARSE_ERROR = "JsonParseError"
    VALIDATION_ERROR = "ValidationError"
    ENRICHMENT_LOOKUP_FAILED = "EnrichmentLookupFailed"
    NOT_FOUND = "NotFound"


class ShipmentPipelineError(Exception):
    """Base exception for request-fatal pipeline failures.

    Attributes:
        kind: ErrorKind of the failure
        message: Human-readable message
        status_code: HTTP-equivalent status for API responses
        details: Raw upstream diagnostic payload, if any
    """
    default_kind = ErrorKind.UPSTREAM_QUERY_FAILED
    default_status = 500

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.status_code = status_code or self.default_status
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class UpstreamQueryFailed(ShipmentPipelineError):
    """Identifier discovery (or a single required read) failed upstream."""
    default_kind = ErrorKind.UPSTREAM_QUERY_FAILED
    default_status = 502

    @classmethod
    def from_upstream(cls, message: str, upstream_status: int, body: Any = None) -> "UpstreamQueryFailed":
        # Upstream 4xx passes through; everything else is a bad gateway
        status = upstream_status if 400 <= upstream_status < 500 else 502
        return cls(message, status_code=status, details=body)


class UpstreamCredentialsMissing(ShipmentPipelineError):
    """PACE connection settings are not configured."""
    default_kind = ErrorKind.UPSTREAM_CREDENTIALS_MISSING
    default_status = 500


class FilterValidationError(ShipmentPipelineError):
    """Malformed caller input, rejected before any upstream call."""
    default_kind = ErrorKind.VALIDATION_ERROR
    default_status = 422


class ShipmentNotFound(ShipmentPipelineError):
    """The requested shipment does not exist upstream."""
    default_kind = ErrorKind.NOT_FOUND
    default_status = 404
