import logging
import secrets
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from models import AuthorizationRequest, ErrorResponse, TokenResponse
from pkce import S256, generate_pkce_pair

logger = logging.getLogger(__name__)


class OAuthClientError(Exception):
    """OAuth flow failed on the client side"""

    def __init__(self, message: str, error: Optional[ErrorResponse] = None):
        super().__init__(message)
        self.error = error


class OAuthClient:
    """OAuth 2.1 PKCE client helper for the authorization server"""

    def __init__(self, base_url: str, client_id: str, http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "OAuthClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        """Close the HTTP client if this helper created it"""
        if self._owns_client:
            await self.client.aclose()

    def generate_pkce_challenge(self) -> Tuple[str, str]:
        """Generate a (code_verifier, code_challenge) pair"""
        return generate_pkce_pair()

    def _authorization_params(self, redirect_uri: str, state: str, code_challenge: str, scope: str) -> Dict[str, str]:
        request = AuthorizationRequest(
            response_type="code",
            client_id=self.client_id,
            redirect_uri=redirect_uri,
            scope=scope,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=S256,
        )
        return request.model_dump(exclude_none=True)

    def get_authorization_url(self, redirect_uri: str, state: str, code_challenge: str,
                              scope: str = "openid profile") -> str:
        """Build the authorization URL for the OAuth 2.1 flow"""
        params = self._authorization_params(redirect_uri, state, code_challenge, scope)
        return f"{self.base_url}/oauth/authorize?{urlencode(params)}"

    async def authorize(self, redirect_uri: str, state: str, code_challenge: str,
                        scope: str = "openid profile") -> str:
        """Request an authorization code and return it from the redirect.

        Raises:
            OAuthClientError: the server did not redirect, or the redirect
                carries no code or a different state
        """
        params = self._authorization_params(redirect_uri, state, code_challenge, scope)
        response = await self.client.get(
            f"{self.base_url}/oauth/authorize", params=params, follow_redirects=False
        )

        if response.status_code != 302:
            raise OAuthClientError(
                f"Authorization failed: {response.status_code}", self._parse_error(response)
            )

        location = response.headers.get("location", "")
        query = parse_qs(urlsplit(location).query)
        code = query.get("code", [None])[0]
        returned_state = query.get("state", [None])[0]

        if not code:
            raise OAuthClientError("Authorization redirect did not include a code")

        if returned_state != state:
            raise OAuthClientError("State mismatch in authorization redirect")

        return code

    async def exchange_code_for_token(self, code: str, redirect_uri: str, code_verifier: str) -> TokenResponse:
        """Exchange an authorization code for an access token"""
        token_data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "code_verifier": code_verifier,
        }

        response = await self.client.post(f"{self.base_url}/oauth/token", data=token_data)

        if response.status_code != 200:
            error = self._parse_error(response)
            logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            raise OAuthClientError(f"Token exchange failed: {response.status_code}", error)

        return TokenResponse(**response.json())

    async def get_discovery_info(self) -> Optional[Dict[str, Any]]:
        """Fetch the authorization server metadata, or None if unavailable"""
        try:
            response = await self.client.get(f"{self.base_url}/.well-known/oauth-authorization-server")
            if response.status_code == 200:
                return response.json()
            logger.warning(f"Discovery failed: {response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Discovery failed: {e}")
        return None

    async def run_pkce_flow(self, redirect_uri: str, scope: str = "openid profile") -> TokenResponse:
        """Run discovery, PKCE, authorization and token exchange in one go"""
        discovery = await self.get_discovery_info()
        if discovery and S256 not in discovery.get("code_challenge_methods_supported", []):
            raise OAuthClientError("Server does not support S256 PKCE")

        code_verifier, code_challenge = self.generate_pkce_challenge()
        state = secrets.token_urlsafe(16)

        code = await self.authorize(redirect_uri, state, code_challenge, scope)
        logger.info("Authorization code received")

        token = await self.exchange_code_for_token(code, redirect_uri, code_verifier)
        logger.info(f"Access token received (expires in {token.expires_in}s)")
        return token

    @staticmethod
    def _parse_error(response: httpx.Response) -> Optional[ErrorResponse]:
        try:
            return ErrorResponse(**response.json())
        except (ValueError, TypeError):
            return None
