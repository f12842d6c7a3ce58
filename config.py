import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

SAMPLE_SIGNING_KEY = "this-is-a-sample-signing-key-change-in-production-and-use-a-secret-store"
MIN_SIGNING_KEY_BYTES = 32


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Config:
    """Configuration for the OAuth 2.1 authorization server.

    Built once at startup and shared read-only by the code store, the
    token issuer and the token validator.
    """

    # Server configuration
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 8000
    base_url: str = "http://localhost:8000"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])

    # Token signing
    signing_key: str = field(default=SAMPLE_SIGNING_KEY, repr=False)
    issuer: str = "http://localhost:8000"
    audience: str = "mcp-api"

    # OAuth configuration
    access_token_ttl: int = 3600  # 1 hour
    code_ttl: int = 600  # 10 minutes
    clock_skew: int = 300  # 5 minutes
    default_client_id: str = "mcp-sample-client"
    default_redirect_uri: str = "http://localhost:8080/callback"
    default_subject: str = "demo-user"
    scopes_supported: List[str] = field(default_factory=lambda: ["openid", "profile"])

    # Cleanup configuration
    cleanup_interval: int = 300  # 5 minutes

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self):
        self._validate_config()

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables"""
        base_url = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 8000)),
            base_url=base_url,
            allowed_origins=cls._parse_allowed_origins(),
            signing_key=os.getenv("JWT_SIGNING_KEY", SAMPLE_SIGNING_KEY),
            issuer=os.getenv("OAUTH_ISSUER", base_url),
            audience=os.getenv("OAUTH_AUDIENCE", "mcp-api"),
            access_token_ttl=int(os.getenv("OAUTH_TOKEN_EXPIRY", 3600)),
            code_ttl=int(os.getenv("OAUTH_CODE_EXPIRY", 600)),
            clock_skew=int(os.getenv("OAUTH_CLOCK_SKEW", 300)),
            default_client_id=os.getenv("OAUTH_DEFAULT_CLIENT_ID", "mcp-sample-client"),
            default_redirect_uri=os.getenv("OAUTH_DEFAULT_REDIRECT_URI", "http://localhost:8080/callback"),
            default_subject=os.getenv("OAUTH_SUBJECT", "demo-user"),
            scopes_supported=_parse_list(os.getenv("OAUTH_SCOPES", "openid,profile")),
            cleanup_interval=int(os.getenv("CLEANUP_INTERVAL", 300)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        )

    @staticmethod
    def _parse_allowed_origins() -> List[str]:
        """Parse allowed origins from environment variable"""
        origins_str = os.getenv("ALLOWED_ORIGINS", "*")
        if origins_str == "*":
            return ["*"]
        return _parse_list(origins_str)

    def _validate_config(self):
        """Validate configuration values"""
        if not self.signing_key:
            raise ValueError("JWT_SIGNING_KEY must be set")

        if len(self.signing_key.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
            raise ValueError(f"JWT_SIGNING_KEY must be at least {MIN_SIGNING_KEY_BYTES} bytes")

        if not self.is_development and self.signing_key == SAMPLE_SIGNING_KEY:
            raise ValueError("JWT_SIGNING_KEY must be set outside development")

        if self.is_production and not self.base_url.startswith("https://"):
            raise ValueError("BASE_URL must use HTTPS in production")

        if self.code_ttl <= 0:
            raise ValueError("OAUTH_CODE_EXPIRY must be positive")

        if self.access_token_ttl <= 0:
            raise ValueError("OAUTH_TOKEN_EXPIRY must be positive")

        if self.clock_skew < 0:
            raise ValueError("OAUTH_CLOCK_SKEW must not be negative")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == "production"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.issuer}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.issuer}/oauth/token"

    def get_code_expiry_delta(self) -> timedelta:
        """Get authorization code expiry as timedelta"""
        return timedelta(seconds=self.code_ttl)
