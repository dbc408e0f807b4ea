"""PACE Connector Package.

Implements the ObjectStore interface for the PACE ERP generic object API.
"""

from connectors.pace.pace_auth import (
    CredentialsProvider,
    EnvCredentialsProvider,
    PaceCredentials,
    PaceCredentialsMissingError,
    StaticCredentialsProvider,
    get_default_credentials_provider,
)
from connectors.pace.pace_client import (
    PaceApiClient,
    PaceApiConfig,
    PaceApiError,
    PaceAuthenticationError,
    PaceJsonParseError,
    PaceLicenseExpiredError,
    PaceNotFoundError,
)
from connectors.pace.pace_models import (
    PaceCarton,
    PaceCartonContent,
    PaceJobShipment,
)

__all__ = [
    # Client
    "PaceApiClient",
    "PaceApiConfig",
    # Errors
    "PaceApiError",
    "PaceAuthenticationError",
    "PaceJsonParseError",
    "PaceLicenseExpiredError",
    "PaceNotFoundError",
    "PaceCredentialsMissingError",
    # Credentials
    "CredentialsProvider",
    "EnvCredentialsProvider",
    "PaceCredentials",
    "StaticCredentialsProvider",
    "get_default_credentials_provider",
    # Models
    "PaceCarton",
    "PaceCartonContent",
    "PaceJobShipment",
]
