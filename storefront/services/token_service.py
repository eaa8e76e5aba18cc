"""Bearer token issuance and verification (HS256 JWT)."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
import structlog

from storefront.errors import TokenExpired, TokenMalformed, TokenVerificationError

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a bearer token."""

    subject: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Mint and validate signed, time-bounded bearer tokens.

    Expiry is checked against the injected ``clock`` rather than the
    library's wall clock so that token lifetimes can be simulated.
    """

    def __init__(self, secret: str, ttl: timedelta, clock: Clock = utc_now):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.ttl = ttl
        self._clock = clock

    def issue(self, subject_id: str) -> str:
        """Create a signed token whose subject is ``subject_id``."""
        now = self._clock()
        payload = {
            "sub": str(subject_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        logger.debug(
            "access_token_issued",
            user_id=str(subject_id),
            ttl_seconds=int(self.ttl.total_seconds()),
        )
        return token

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            TokenExpired: The token is past its expiry
            TokenMalformed: The signature or structure is invalid
            TokenVerificationError: Any other decode failure
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.DecodeError as e:
            # InvalidSignatureError is a DecodeError
            raise TokenMalformed(details=str(e))
        except jwt.InvalidTokenError as e:
            raise TokenVerificationError(details=str(e))

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError) as e:
            raise TokenVerificationError(details=str(e))

        subject = payload["sub"]
        if not isinstance(subject, str) or not subject:
            raise TokenVerificationError("Invalid token subject")

        if self._clock() >= expires_at:
            raise TokenExpired()

        return TokenClaims(subject=subject, issued_at=issued_at, expires_at=expires_at)
