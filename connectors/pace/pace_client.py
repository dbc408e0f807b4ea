"""PACE HTTP Client.

Low-level HTTP client for the PACE generic object web services:
- FindObjects/findSortAndLimit: attribute query -> primary keys
- ReadObject/read{Type}: primary key -> object body
- CreateObject/create{Type}: payload -> created object body

Handles authentication headers and error classification. It never retries;
the shipment pipeline decides which failures are worth a second attempt.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from connectors.erp_base import ObjectStore, SortSpec, register_connector
from connectors.pace.pace_auth import CredentialsProvider, PaceCredentials
from core.observability.logging import get_logger

logger = get_logger(__name__)

LICENSE_EXPIRED_MESSAGE = "System License Expired"


class PaceApiError(Exception):
    """Base exception for PACE API errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class PaceAuthenticationError(PaceApiError):
    """Authentication failed (401/403)."""
    pass


class PaceNotFoundError(PaceApiError):
    """Object not found (404)."""
    pass


class PaceLicenseExpiredError(PaceApiError):
    """The PACE installation refuses service because its license lapsed."""
    pass


class PaceJsonParseError(PaceApiError):
    """A 2xx response whose body is not valid JSON."""
    pass


@dataclass
class PaceApiConfig:
    """Configuration for the PACE API client.

    timeout_seconds of None leaves aiohttp's default session timeout in place.
    """
    timeout_seconds: Optional[float] = None
    find_path: str = "FindObjects/findSortAndLimit"
    read_path: str = "ReadObject/read{object_type}"
    create_path: str = "CreateObject/create{object_type}"

    def get_find_url(self, base_url: str) -> str:
        return f"{base_url}/{self.find_path}"

    def get_read_url(self, base_url: str, object_type: str) -> str:
        return f"{base_url}/{self.read_path.format(object_type=object_type)}"

    def get_create_url(self, base_url: str, object_type: str) -> str:
        return f"{base_url}/{self.create_path.format(object_type=object_type)}"


def _license_expired(response_text: str) -> bool:
    try:
        body = json.loads(response_text)
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("message") == LICENSE_EXPIRED_MESSAGE


@register_connector("pace")
class PaceApiClient(ObjectStore):
    """HTTP client for the PACE object API.

    Usage:
        async with PaceApiClient(credentials_provider) as client:
            ids = await client.find_objects("JobShipment", "@job = '112823'")
            shipment = await client.read_object("JobShipment", ids[0])
    """

    def __init__(
        self,
        credentials_provider: CredentialsProvider,
        api_config: Optional[PaceApiConfig] = None,
    ):
        self.credentials_provider = credentials_provider
        self.api_config = api_config or PaceApiConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def close(self) -> None:
        await self.disconnect()

    async def __aenter__(self) -> "PaceApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _get_headers(self, credentials: PaceCredentials, with_json_body: bool) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Authorization": credentials.authorization_header,
        }
        if with_json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
    ) -> str:
        """POST to a PACE service and return the raw response text.

        Raises:
            PaceAuthenticationError: 401/403
            PaceNotFoundError: 404
            PaceLicenseExpiredError: The server reports an expired license
            PaceApiError: Any other non-2xx status or transport failure
        """
        await self.connect()
        credentials = await self.credentials_provider.get_credentials()
        full_url = f"{credentials.url}{url}"

        request_kwargs: Dict[str, Any] = {
            "headers": self._get_headers(credentials, json_body is not None),
            "params": params,
        }
        if json_body is not None:
            request_kwargs["json"] = json_body
        else:
            request_kwargs["data"] = b""
        if self.api_config.timeout_seconds:
            request_kwargs["timeout"] = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)

        try:
            async with self._session.post(full_url, **request_kwargs) as response:
                response_text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PaceApiError(f"Request to {full_url} failed: {type(e).__name__}: {e}") from e

        if status < 300:
            return response_text

        if _license_expired(response_text):
            raise PaceLicenseExpiredError(
                "PACE System License Expired. Please contact your PACE administrator to renew the license.",
                status,
                response_text,
            )

        if status in (401, 403):
            raise PaceAuthenticationError(
                f"Authentication failed ({status})",
                status,
                response_text,
            )

        if status == 404:
            raise PaceNotFoundError(
                f"Object not found: {full_url}",
                status,
                response_text,
            )

        raise PaceApiError(
            f"API error {status}: {response_text[:200]}",
            status,
            response_text,
        )

    @staticmethod
    def _decode(response_text: str, status: int = 200) -> Any:
        if not response_text:
            return None
        try:
            return json.loads(response_text)
        except ValueError as e:
            raise PaceJsonParseError(
                f"Invalid JSON in response: {e}",
                status,
                response_text,
            ) from e

    async def find_objects(
        self,
        object_type: str,
        xpath: str,
        offset: int = 0,
        limit: int = 1000,
        sort: Optional[Sequence[SortSpec]] = None,
    ) -> List[str]:
        """Find primary keys with findSortAndLimit.

        Returns:
            Primary keys as strings (composite keys such as "112823:02" included)
        """
        params = {
            "type": str(object_type),
            "xpath": xpath,
            "offset": str(offset),
            "limit": str(limit),
        }
        body = [s.to_dict() for s in (sort or [])]

        text = await self._request(self.api_config.get_find_url(""), params=params, json_body=body)
        keys = self._decode(text) or []
        if not isinstance(keys, list):
            raise PaceApiError(
                f"Expected a list of primary keys for {object_type}, got {type(keys).__name__}",
                200,
                text,
            )
        return [str(k) for k in keys]

    async def read_object(self, object_type: str, primary_key: str) -> Dict[str, Any]:
        """Read one object by primary key.

        Raises:
            PaceJsonParseError: The body is not a JSON object
        """
        text = await self._request(
            self.api_config.get_read_url("", str(object_type)),
            params={"primaryKey": str(primary_key)},
        )
        body = self._decode(text)
        if not isinstance(body, dict):
            raise PaceJsonParseError(
                f"Expected a JSON object for {object_type} {primary_key}",
                200,
                text,
            )
        return body

    async def create_object(self, object_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create an object and return the stored body."""
        logger.info(
            f"Creating {object_type}",
            extra_fields={"payload": payload},
        )
        text = await self._request(
            self.api_config.get_create_url("", str(object_type)),
            json_body=payload,
        )
        return self._decode(text) or {}
