import logging
from typing import Optional, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from auth_codes import AuthorizationCodeStore
from config import Config
from errors import (
    InvalidClient,
    InvalidGrant,
    InvalidRequest,
    UnsupportedChallengeMethod,
    UnsupportedGrantType,
    UnsupportedResponseType,
)
from models import AccessTokenClaims, AuthorizationServerMetadata, TokenRequest, TokenResponse
from pkce import S256
from tokens import TokenIssuer, TokenValidator

logger = logging.getLogger(__name__)


def build_redirect_url(redirect_uri: str, code: str, state: Optional[str] = None) -> str:
    """Append code and state to a redirect URI, keeping its existing query"""
    parts = urlsplit(redirect_uri)
    params = [("code", code)]
    if state is not None:
        params.append(("state", state))
    query = urlencode(params)
    if parts.query:
        # Existing query is kept byte-for-byte
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class AuthManager:
    """OAuth 2.1 authorization server: authorize, token and bearer validation.

    Flow per issued code: START -> CODE_ISSUED -> TOKEN_ISSUED, or
    CODE_ISSUED -> REJECTED when the code expires or redemption fails.
    Every authorization request is approved for the configured subject;
    there is no login or consent step.
    """

    def __init__(
        self,
        config: Config,
        code_store: Optional[AuthorizationCodeStore] = None,
        token_issuer: Optional[TokenIssuer] = None,
        token_validator: Optional[TokenValidator] = None,
    ):
        self.config = config
        self.code_store = code_store if code_store is not None else AuthorizationCodeStore(config)
        self.token_issuer = token_issuer if token_issuer is not None else TokenIssuer(config)
        self.token_validator = token_validator if token_validator is not None else TokenValidator(config)

    def create_authorization(
        self,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        response_type: Optional[str] = "code",
        scope: str = "",
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = S256,
    ) -> Tuple[str, str]:
        """Validate an authorization request and issue a code.

        Returns:
            Tuple of (code, redirect_url)

        Raises:
            UnsupportedResponseType, InvalidRequest, InvalidClient,
            UnsupportedChallengeMethod: request-shape problems, never
                redirected back to the client
        """
        if response_type != "code":
            raise UnsupportedResponseType("response_type must be code")

        if not client_id:
            raise InvalidRequest("client_id is required")

        if not redirect_uri:
            raise InvalidRequest("redirect_uri is required")

        if client_id != self.config.default_client_id:
            raise InvalidClient("Unknown client_id")

        if code_challenge_method != S256:
            raise UnsupportedChallengeMethod()

        if not code_challenge:
            raise InvalidRequest("code_challenge is required")

        auth_code = self.code_store.issue(
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            scope=scope,
        )

        redirect_url = build_redirect_url(redirect_uri, auth_code, state)

        logger.info(f"Authorization granted for client {client_id}")
        return auth_code, redirect_url

    def exchange_code_for_token(self, request: TokenRequest) -> TokenResponse:
        """Exchange an authorization code for an access token with PKCE verification"""
        if request.grant_type != "authorization_code":
            raise UnsupportedGrantType("grant_type must be authorization_code")

        if not request.code:
            raise InvalidGrant("missing code")

        # Any other missing parameter fails inside redeem, which burns the code
        try:
            code_data = self.code_store.redeem(
                code=request.code,
                client_id=request.client_id or "",
                redirect_uri=request.redirect_uri or "",
                code_verifier=request.code_verifier or "",
            )
        except InvalidGrant as e:
            logger.warning(f"Token request rejected for client {request.client_id}: {e.reason}")
            raise

        issued = self.token_issuer.issue(
            subject=code_data.subject,
            client_id=code_data.client_id,
            scope=code_data.scope,
        )

        return TokenResponse(
            access_token=issued.access_token,
            token_type="Bearer",
            expires_in=issued.expires_in,
            scope=code_data.scope,
        )

    def verify_token(self, token: str) -> AccessTokenClaims:
        """Validate a bearer token and return its claims"""
        return self.token_validator.validate(token)

    def metadata(self) -> AuthorizationServerMetadata:
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)"""
        return AuthorizationServerMetadata(
            issuer=self.config.issuer,
            authorization_endpoint=self.config.authorization_endpoint,
            token_endpoint=self.config.token_endpoint,
            scopes_supported=list(self.config.scopes_supported),
        )
