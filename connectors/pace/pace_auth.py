"""PACE Credentials Provider.

PACE authenticates every request with one shared service account sent as a
Basic Authorization header. There is no token or session to refresh, so the
provider's only job is to locate the credentials once and hand them out.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import aiohttp

from core.config import PaceSettings, get_settings


class PaceCredentialsMissingError(Exception):
    """Required PACE connection settings are not configured."""

    def __init__(self, missing: list):
        self.missing = list(missing)
        super().__init__(
            "PACE API credentials not configured. Please set "
            + ", ".join(self.missing)
        )


@dataclass(frozen=True)
class PaceCredentials:
    """Base URL plus the shared service account."""
    url: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"PaceCredentials(url={self.url!r}, username={self.username!r}, password='***')"

    @property
    def basic_auth(self) -> aiohttp.BasicAuth:
        return aiohttp.BasicAuth(self.username, self.password)

    @property
    def authorization_header(self) -> str:
        """Get the Authorization header value ("Basic <base64>")."""
        return self.basic_auth.encode()


class CredentialsProvider(ABC):
    """Source of PACE credentials, injected into the client."""

    @abstractmethod
    async def get_credentials(self) -> PaceCredentials:
        """Return credentials or raise PaceCredentialsMissingError."""
        pass


class StaticCredentialsProvider(CredentialsProvider):
    """Fixed credentials. Used by tests and scripts."""

    def __init__(self, credentials: PaceCredentials):
        self._credentials = credentials

    async def get_credentials(self) -> PaceCredentials:
        return self._credentials


class EnvCredentialsProvider(CredentialsProvider):
    """Credentials from settings, memoized for the process lifetime.

    Usage:
        provider = EnvCredentialsProvider()
        creds = await provider.get_credentials()
    """

    def __init__(self, settings: Optional[PaceSettings] = None):
        self._settings = settings
        self._credentials: Optional[PaceCredentials] = None
        self._lock = Lock()

    async def get_credentials(self) -> PaceCredentials:
        if self._credentials is not None:
            return self._credentials

        with self._lock:
            if self._credentials is None:
                settings = self._settings or get_settings()
                missing = settings.missing_credentials
                if missing:
                    raise PaceCredentialsMissingError(missing)
                self._credentials = PaceCredentials(
                    url=settings.api_url,
                    username=settings.username,
                    password=settings.password,
                )
        return self._credentials

    def clear_cache(self) -> None:
        """Forget memoized credentials so the next call re-reads settings."""
        with self._lock:
            self._credentials = None


_default_provider: Optional[EnvCredentialsProvider] = None
_default_lock = Lock()


def get_default_credentials_provider() -> EnvCredentialsProvider:
    """Get the lazily-created process-wide provider."""
    global _default_provider
    if _default_provider is None:
        with _default_lock:
            if _default_provider is None:
                _default_provider = EnvCredentialsProvider()
    return _default_provider
