import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from config import Config
from errors import InvalidGrant, UnsupportedChallengeMethod
from models import AuthorizationCode
from pkce import S256, generate_token, validate_pkce

logger = logging.getLogger(__name__)

CODE_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationCodeStore:
    """
    In-memory store of single-use, time-bounded authorization codes.

    Shared by concurrent request handlers. Every insert, redeem and sweep
    goes through one lock, and redeem pops the record before checking it
    so a code can never be redeemed twice.
    """

    def __init__(self, config: Config, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or utcnow
        self._codes: Dict[str, AuthorizationCode] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

    def issue(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str,
        code_challenge_method: str,
        scope: str,
        subject: Optional[str] = None,
    ) -> str:
        """Store a new authorization code bound to a PKCE challenge"""
        if code_challenge_method != S256:
            raise UnsupportedChallengeMethod()

        record = AuthorizationCode(
            code=generate_token(CODE_BYTES),
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            scope=scope,
            subject=subject or self.config.default_subject,
            expires_at=self.clock() + self.config.get_code_expiry_delta(),
        )

        with self._lock:
            self._codes[record.code] = record

        logger.info(f"Authorization code issued for client {client_id}")
        return record.code

    def redeem(self, code: str, client_id: str, redirect_uri: str, code_verifier: str) -> AuthorizationCode:
        """Consume a code and return its record if every check passes.

        The code is removed whether or not redemption succeeds.

        Raises:
            InvalidGrant: code unknown, expired, bound to another
                client/redirect URI, or the verifier does not match
        """
        with self._lock:
            record = self._codes.pop(code, None)

        if record is None:
            raise InvalidGrant("unknown or already used code")

        if record.is_expired(self.clock()):
            raise InvalidGrant("code expired")

        if record.client_id != client_id or record.redirect_uri != redirect_uri:
            raise InvalidGrant("client_id or redirect_uri mismatch")

        if not validate_pkce(record.code_challenge, record.code_challenge_method, code_verifier):
            raise InvalidGrant("code_verifier does not match code_challenge")

        logger.info(f"Authorization code redeemed for client {client_id}")
        return record

    def purge_expired(self) -> int:
        """Remove expired codes and return how many were dropped"""
        now = self.clock()
        with self._lock:
            expired_codes = [code for code, record in self._codes.items() if record.is_expired(now)]
            for code in expired_codes:
                del self._codes[code]
        return len(expired_codes)

    async def cleanup_expired_codes(self):
        """Background task to clean up expired authorization codes"""
        while True:
            try:
                purged = self.purge_expired()
                if purged:
                    logger.info(f"Cleaned up {purged} expired authorization codes")

                await asyncio.sleep(self.config.cleanup_interval)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}")
                await asyncio.sleep(60)  # Wait 1 minute on error
