"""Signed access tokens (JWT, HS256).

Tokens are stateless: validity is derived entirely from the signature
and the claims, so there is no server-side token table.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, NamedTuple, Optional

import jwt

from auth_codes import utcnow
from config import Config
from errors import Unauthorized
from models import AccessTokenClaims

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "aud", "jti"]


class IssuedToken(NamedTuple):
    access_token: str
    expires_in: int


class TokenIssuer:
    """Mints access tokens for redeemed authorization codes"""

    def __init__(self, config: Config, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or utcnow

    def issue(self, subject: str, client_id: str, scope: str) -> IssuedToken:
        """Build and sign the claim set for a subject/client pair.

        Args:
            subject: Principal the token is issued for
            client_id: Client that redeemed the authorization code
            scope: Scope granted, copied from the code

        Returns:
            The encoded token and its lifetime in seconds
        """
        issued_at = int(self.clock().timestamp())
        claims = {
            "sub": subject,
            "client_id": client_id,
            "scope": scope,
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + self.config.access_token_ttl,
            "iss": self.config.issuer,
            "aud": self.config.audience,
        }

        token = jwt.encode(claims, self.config.signing_key, algorithm=JWT_ALGORITHM)

        logger.info(f"Access token issued for client {client_id} (jti={claims['jti']})")
        return IssuedToken(access_token=token, expires_in=self.config.access_token_ttl)


class TokenValidator:
    """Accepts or rejects bearer tokens presented to protected resources"""

    def __init__(self, config: Config):
        self.config = config

    def validate(self, token: str) -> AccessTokenClaims:
        """Verify signature, issuer, audience and expiry of a token.

        Raises:
            Unauthorized: for any failure; the specific check is only logged
        """
        if not token:
            raise Unauthorized()

        try:
            payload = jwt.decode(
                token,
                self.config.signing_key,
                algorithms=[JWT_ALGORITHM],
                audience=self.config.audience,
                issuer=self.config.issuer,
                leeway=self.config.clock_skew,
                options={"require": REQUIRED_CLAIMS},
            )
            return AccessTokenClaims(**payload)
        except jwt.ExpiredSignatureError:
            logger.debug("Token rejected: expired")
            raise Unauthorized()
        except jwt.InvalidTokenError as e:
            logger.debug(f"Token rejected: {e}")
            raise Unauthorized()
        except ValueError as e:
            # pydantic.ValidationError for malformed claim values
            logger.debug(f"Token rejected: malformed claims ({e})")
            raise Unauthorized()
