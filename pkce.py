"""PKCE (Proof Key for Code Exchange) utilities, RFC 7636, S256 only."""

import base64
import hashlib
import hmac
import re
import secrets
from typing import Tuple

S256 = "S256"
VERIFIER_BYTES = 32

# RFC 7636 section 4.1: 43-128 characters from the unreserved set
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_token(nbytes: int = VERIFIER_BYTES) -> str:
    """Return a URL-safe random string built from nbytes of secure randomness"""
    return _b64url(secrets.token_bytes(nbytes))


def compute_challenge(code_verifier: str) -> str:
    """Compute the S256 code challenge for a verifier"""
    return _b64url(hashlib.sha256(code_verifier.encode("ascii")).digest())


def generate_pkce_pair() -> Tuple[str, str]:
    """Generate a PKCE verifier and its S256 challenge.

    The verifier is 32 random bytes, base64url encoded without padding
    (43 characters). The challenge is sent with the authorization
    request and the verifier with the token request.

    Returns:
        Tuple of (verifier, challenge)
    """
    verifier = generate_token(VERIFIER_BYTES)
    return verifier, compute_challenge(verifier)


def validate_pkce(code_challenge: str, code_challenge_method: str, code_verifier: str) -> bool:
    """Check a verifier against the challenge recorded at authorization time"""
    if code_challenge_method != S256:
        return False

    if not code_verifier or not _VERIFIER_PATTERN.match(code_verifier):
        return False

    # Constant-time comparison to prevent timing attacks
    expected = compute_challenge(code_verifier).encode("ascii")
    return hmac.compare_digest(expected, (code_challenge or "").encode("utf-8"))
