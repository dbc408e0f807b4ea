"""Tests for settings loading and credential resolution."""

import asyncio

import pytest

from connectors.pace.pace_auth import EnvCredentialsProvider, PaceCredentialsMissingError
from core.config import PaceSettings, load_settings


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings({})
        assert settings.display_timezone == "America/Los_Angeles"
        assert settings.fetch_batch_size == 50
        assert settings.use_shipped_prefilter is True
        assert settings.http_timeout_seconds is None
        assert settings.missing_credentials == ["PACE_API_URL", "PACE_USERNAME", "PACE_PASSWORD"]

    def test_from_mapping(self):
        settings = load_settings({
            "PACE_API_URL": "https://pace.example.com/rpc/rest/services/",
            "PACE_USERNAME": "svc",
            "PACE_PASSWORD": "pw",
            "PACE_FETCH_BATCH_SIZE": "25",
            "PACE_CACHE_TTL_SECONDS": "60",
            "PACE_USE_SHIPPED_PREFILTER": "off",
            "LOG_LEVEL": "debug",
        })
        assert settings.api_url == "https://pace.example.com/rpc/rest/services"
        assert settings.fetch_batch_size == 25
        assert settings.cache_ttl_seconds == 60.0
        assert settings.use_shipped_prefilter is False
        assert settings.log_level == "DEBUG"
        assert settings.missing_credentials == []

    def test_batch_size_clamped(self):
        assert load_settings({"PACE_FETCH_BATCH_SIZE": "500"}).fetch_batch_size == 100
        assert load_settings({"PACE_FETCH_BATCH_SIZE": "0"}).fetch_batch_size == 1

    @pytest.mark.parametrize("name,value", [
        ("PACE_FETCH_BATCH_SIZE", "many"),
        ("PACE_HTTP_TIMEOUT_SECONDS", "soon"),
        ("PACE_USE_SHIPPED_PREFILTER", "maybe"),
    ])
    def test_malformed_values(self, name, value):
        with pytest.raises(ValueError, match=name):
            load_settings({name: value})


class TestEnvCredentialsProvider:

    def test_missing_values_reported(self):
        provider = EnvCredentialsProvider(PaceSettings(api_url="https://pace.test", username="svc"))
        with pytest.raises(PaceCredentialsMissingError) as exc:
            asyncio.run(provider.get_credentials())
        assert exc.value.missing == ["PACE_PASSWORD"]
        assert "PACE_PASSWORD" in str(exc.value)

    def test_memoized(self, settings):
        provider = EnvCredentialsProvider(settings)
        first = asyncio.run(provider.get_credentials())
        assert asyncio.run(provider.get_credentials()) is first
        provider.clear_cache()
        assert asyncio.run(provider.get_credentials()) is not first

    def test_password_not_in_repr(self, settings):
        credentials = asyncio.run(EnvCredentialsProvider(settings).get_credentials())
        assert "secret" not in repr(credentials)
        assert credentials.authorization_header.startswith("Basic ")
