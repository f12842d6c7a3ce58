"""Unit tests for configuration loading and validation."""

import dataclasses

import pytest

from config import SAMPLE_SIGNING_KEY, Config

from conftest import SIGNING_KEY


class TestFromEnv:
    """Tests for Config.from_env."""

    def test_defaults(self, monkeypatch):
        for name in ["ENVIRONMENT", "BASE_URL", "JWT_SIGNING_KEY", "OAUTH_ISSUER", "OAUTH_SCOPES"]:
            monkeypatch.delenv(name, raising=False)

        config = Config.from_env()

        assert config.is_development
        assert config.issuer == "http://localhost:8000"
        assert config.audience == "mcp-api"
        assert config.access_token_ttl == 3600
        assert config.code_ttl == 600
        assert config.clock_skew == 300
        assert config.default_client_id == "mcp-sample-client"
        assert config.scopes_supported == ["openid", "profile"]

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("BASE_URL", "https://auth.example.com/")
        monkeypatch.setenv("JWT_SIGNING_KEY", SIGNING_KEY)
        monkeypatch.setenv("OAUTH_AUDIENCE", "orders-api")
        monkeypatch.setenv("OAUTH_TOKEN_EXPIRY", "900")
        monkeypatch.setenv("OAUTH_SCOPES", "openid, orders:read")
        monkeypatch.delenv("OAUTH_ISSUER", raising=False)

        config = Config.from_env()

        assert config.is_production
        assert config.issuer == "https://auth.example.com"
        assert config.audience == "orders-api"
        assert config.access_token_ttl == 900
        assert config.scopes_supported == ["openid", "orders:read"]


class TestValidation:
    """Tests for startup validation."""

    def test_missing_signing_key_aborts(self):
        with pytest.raises(ValueError):
            Config(signing_key="")

    def test_short_signing_key_aborts(self):
        with pytest.raises(ValueError):
            Config(signing_key="too-short")

    def test_sample_key_rejected_in_production(self):
        with pytest.raises(ValueError):
            Config(environment="production", base_url="https://auth.example.com", signing_key=SAMPLE_SIGNING_KEY)

    @pytest.mark.parametrize("environment", ["staging", "test"])
    def test_sample_key_rejected_outside_development(self, environment):
        with pytest.raises(ValueError):
            Config(environment=environment, signing_key=SAMPLE_SIGNING_KEY)

    def test_sample_key_allowed_in_development(self):
        config = Config(environment="development", signing_key=SAMPLE_SIGNING_KEY)

        assert config.is_development

    def test_staging_allows_http_base_url(self):
        config = Config(environment="staging", base_url="http://staging.internal:8000", signing_key=SIGNING_KEY)

        assert not config.is_production

    def test_production_requires_https(self):
        with pytest.raises(ValueError):
            Config(environment="production", base_url="http://auth.example.com", signing_key=SIGNING_KEY)

    @pytest.mark.parametrize("field", ["code_ttl", "access_token_ttl"])
    def test_non_positive_ttl_rejected(self, field):
        with pytest.raises(ValueError):
            Config(signing_key=SIGNING_KEY, **{field: 0})


class TestImmutability:
    """Configuration is read-only after startup."""

    def test_fields_cannot_be_reassigned(self, config):
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.signing_key = "x" * 40

    def test_signing_key_not_in_repr(self, config):
        assert SIGNING_KEY not in repr(config)
