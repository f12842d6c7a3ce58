"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from auth import AuthManager
from auth_codes import AuthorizationCodeStore
from config import Config
from tokens import TokenIssuer, TokenValidator

SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256-0123456789"
CLIENT_ID = "mcp-sample-client"
REDIRECT_URI = "http://localhost:8080/callback"


class FakeClock:
    """Controllable UTC clock for expiry tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def config():
    """Test configuration with a fixed signing key."""
    return Config(
        environment="test",
        base_url="http://testserver",
        signing_key=SIGNING_KEY,
        issuer="http://testserver",
        audience="mcp-api",
        default_client_id=CLIENT_ID,
        default_redirect_uri=REDIRECT_URI,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def code_store(config, clock):
    return AuthorizationCodeStore(config, clock=clock)


@pytest.fixture
def token_issuer(config):
    return TokenIssuer(config)


@pytest.fixture
def token_validator(config):
    return TokenValidator(config)


@pytest.fixture
def auth_manager(config, code_store, token_issuer, token_validator):
    return AuthManager(
        config,
        code_store=code_store,
        token_issuer=token_issuer,
        token_validator=token_validator,
    )
