from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

# OAuth Models
class AuthorizationCode(BaseModel):
    """Pending authorization code exchange, owned by the code store"""
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Opaque single-use authorization code")
    client_id: str = Field(..., description="Client that requested the code")
    redirect_uri: str = Field(..., description="Redirect URI given at authorization time")
    code_challenge: str = Field(..., description="PKCE code challenge")
    code_challenge_method: str = Field("S256", description="PKCE challenge method")
    scope: str = Field("", description="Requested scope, passed through unchanged")
    subject: str = Field("demo-user", description="Principal the code was issued for")
    expires_at: datetime = Field(..., description="Absolute expiry time (UTC)")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

class AuthorizationRequest(BaseModel):
    """OAuth 2.1 Authorization Request"""
    response_type: str = Field("code", description="Must be 'code'")
    client_id: Optional[str] = Field(None, description="Client identifier")
    redirect_uri: Optional[str] = Field(None, description="Redirect URI")
    scope: str = Field("openid profile", description="Requested scope")
    state: Optional[str] = Field(None, description="Opaque CSRF state echoed to the client")
    code_challenge: Optional[str] = Field(None, description="PKCE code challenge")
    code_challenge_method: Optional[str] = Field("S256", description="PKCE challenge method")

class TokenRequest(BaseModel):
    """OAuth 2.1 Token Request"""
    grant_type: Optional[str] = Field(None, description="Authorization grant type")
    code: Optional[str] = Field(None, description="Authorization code")
    redirect_uri: Optional[str] = Field(None, description="Redirect URI")
    client_id: Optional[str] = Field(None, description="Client identifier")
    code_verifier: Optional[str] = Field(None, description="PKCE code verifier")

class TokenResponse(BaseModel):
    """OAuth 2.1 Token Response"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: Optional[str] = None

    @field_validator('expires_in')
    @classmethod
    def validate_expires_in(cls, v):
        if v <= 0:
            raise ValueError('expires_in must be positive')
        return v

class AccessTokenClaims(BaseModel):
    """Claims carried by a signed access token"""
    sub: str
    client_id: str
    scope: str = ""
    jti: str
    iat: int
    exp: int
    iss: str
    aud: str

class AuthorizationServerMetadata(BaseModel):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)"""
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    response_types_supported: List[str] = ["code"]
    grant_types_supported: List[str] = ["authorization_code"]
    code_challenge_methods_supported: List[str] = ["S256"]
    scopes_supported: List[str] = []

# API Response Models
class HealthCheckResponse(BaseModel):
    """Health Check Response"""
    status: str
    service: str
    version: str
    timestamp: str
    environment: str

# Error Models
class ErrorResponse(BaseModel):
    """OAuth error body"""
    error: str
    error_description: Optional[str] = None
