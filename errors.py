"""OAuth 2.1 error taxonomy.

Every error carries the RFC 6749 wire code, an optional human-readable
description and the HTTP status it is surfaced with. None of them are
fatal to the process; the HTTP layer turns them into the standard
``{"error": ..., "error_description": ...}`` body.
"""

from typing import Any, Dict, Optional


class OAuthError(Exception):
    """Base OAuth protocol error"""

    error = "server_error"
    status_code = 400

    def __init__(self, description: Optional[str] = None):
        super().__init__(description or self.error)
        self.description = description

    def to_response(self) -> Dict[str, Any]:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class InvalidRequest(OAuthError):
    """Malformed or unsupported request parameters"""

    error = "invalid_request"


class UnsupportedChallengeMethod(InvalidRequest):
    """PKCE method other than S256"""

    def __init__(self, description: Optional[str] = "code_challenge_method must be S256"):
        super().__init__(description)


class UnsupportedResponseType(OAuthError):
    error = "unsupported_response_type"


class InvalidClient(OAuthError):
    """Unknown client identifier"""

    error = "invalid_client"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"


class InvalidGrant(OAuthError):
    """Authorization code missing, expired, mismatched or failing PKCE.

    The cause is deliberately not carried to the caller.
    """

    error = "invalid_grant"

    def __init__(self, description: Optional[str] = None):
        # The reason is only for server-side logs
        super().__init__(None)
        self.reason = description


class Unauthorized(OAuthError):
    """Bearer token failed validation at a protected resource"""

    error = "invalid_token"
    status_code = 401

    def __init__(self, description: Optional[str] = "Invalid or expired token"):
        super().__init__(description)
