"""Authentication service: login, registration and password lifecycle.

Pure business logic with no HTTP dependencies. Raises ``storefront.errors``
variants that the API layer maps to status codes.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

import structlog

from storefront.errors import (
    Conflict,
    Forbidden,
    Internal,
    InvalidCredentials,
    InvalidOrExpired,
    NotFound,
    TokenVerificationError,
    Unauthorized,
)
from storefront.models.user import User, UserRecord
from storefront.repositories.user_repository import UserStore
from storefront.services.email_service import Mailer
from storefront.services.password_hasher import PasswordHasher
from storefront.services.token_service import Clock, TokenService, utc_now

logger = structlog.get_logger(__name__)

FORGOT_PASSWORD_MESSAGE = (
    "If your email exists in our system, you will receive a password reset link."
)
RESET_TOKEN_BYTES = 32


def hash_reset_token(raw_token: str) -> str:
    """SHA-256 hex digest under which a reset token is stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful login or registration."""

    access_token: str
    expires_in: int
    user: User


class AuthService:
    """Orchestrates credential checks, token issuance and password resets."""

    def __init__(
        self,
        users: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        mailer: Mailer,
        password_reset_ttl: timedelta = timedelta(hours=1),
        clock: Clock = utc_now,
    ):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.mailer = mailer
        self.password_reset_ttl = password_reset_ttl
        self._clock = clock
        # Verified against on unknown emails so both login failures cost a bcrypt check
        self._dummy_hash = hasher.hash(secrets.token_urlsafe(16))

    def _issue(self, user: UserRecord) -> AuthResult:
        return AuthResult(
            access_token=self.tokens.issue(str(user.id)),
            expires_in=int(self.tokens.ttl.total_seconds()),
            user=user.to_public(),
        )

    async def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and issue a bearer token.

        Raises:
            InvalidCredentials: Unknown email or wrong password (same error)
            Forbidden: Correct credentials for a deactivated account
        """
        user = await self.users.find_by_email(email)

        if user is None:
            self.hasher.verify(password, self._dummy_hash)
            logger.info("login_failed", reason="unknown_email")
            raise InvalidCredentials()

        if not self.hasher.verify(password, user.password_hash):
            logger.info("login_failed", reason="wrong_password", user_id=str(user.id))
            raise InvalidCredentials()

        if not user.is_active:
            logger.info("login_rejected_inactive", user_id=str(user.id))
            raise Forbidden("Your account has been deactivated")

        logger.info("user_logged_in", user_id=str(user.id))
        return self._issue(user)

    async def register(
        self, first_name: str, last_name: str, email: str, password: str
    ) -> AuthResult:
        """Create an account and issue a bearer token.

        Raises:
            Conflict: The email is already registered
        """
        if await self.users.find_by_email(email) is not None:
            raise Conflict("Email already registered")

        password_hash = self.hasher.hash(password)
        user = await self.users.create(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=password_hash,
        )

        logger.info("user_registered", user_id=str(user.id))

        if not await self.mailer.send_welcome_email(user.email, user.first_name):
            logger.warning("welcome_email_not_sent", user_id=str(user.id))

        return self._issue(user)

    async def authenticate_token(self, token: str) -> User:
        """Resolve a bearer token to the active user it was issued for.

        Raises:
            Unauthorized: Token invalid or expired, or user no longer exists
            Forbidden: User account is deactivated
        """
        claims = self.tokens.verify(token)

        try:
            user_id = UUID(claims.subject)
        except ValueError:
            raise TokenVerificationError("Invalid token subject")

        user = await self.users.find_by_id(user_id)
        if user is None:
            raise Unauthorized("User not found")
        if not user.is_active:
            raise Forbidden("Your account has been deactivated")
        return user.to_public()

    async def get_profile(self, user_id: UUID) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user.to_public()

    async def update_profile(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        user = await self.users.update_profile(
            user_id, first_name=first_name, last_name=last_name
        )
        if user is None:
            raise NotFound("User not found")
        return user.to_public()

    async def forgot_password(self, email: str) -> str:
        """Start a password reset for ``email``.

        Returns the same message whether or not the email is registered.

        Raises:
            Internal: The reset email could not be sent. The stored token
                has been cleared again before raising.
        """
        user = await self.users.find_by_email(email)
        if user is None:
            logger.info("password_reset_requested_unknown_email")
            return FORGOT_PASSWORD_MESSAGE

        raw_token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
        token_hash = hash_reset_token(raw_token)
        expires_at = self._clock() + self.password_reset_ttl
        await self.users.save_reset_token(user.id, token_hash, expires_at)

        sent = await self.mailer.send_password_reset_email(
            user.email, user.first_name, raw_token
        )
        if not sent:
            # Leaves a token stored by a newer request in place
            await self.users.clear_reset_token(user.id, token_hash)
            logger.error("password_reset_email_failed", user_id=str(user.id))
            raise Internal("Failed to send password reset email")

        logger.info(
            "password_reset_requested",
            user_id=str(user.id),
            expires_at=expires_at.isoformat(),
        )
        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(self, raw_token: str, new_password: str) -> None:
        """Consume a reset token and set a new password.

        Checking the token and writing the password is one store call, so a
        token admits at most one reset even when requests overlap.

        Raises:
            InvalidOrExpired: Token unknown, already used, or expired
        """
        password_hash = self.hasher.hash(new_password)
        user_id = await self.users.consume_reset_token(
            hash_reset_token(raw_token), password_hash, self._clock()
        )

        if user_id is None:
            logger.info("password_reset_rejected")
            raise InvalidOrExpired()

        logger.info("password_reset_completed", user_id=str(user_id))

    async def change_password(
        self, user_id: UUID, current_password: str, new_password: str
    ) -> None:
        """Replace the password after checking the current one.

        Raises:
            NotFound: The user no longer exists
            Unauthorized: ``current_password`` does not match
        """
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")

        if not self.hasher.verify(current_password, user.password_hash):
            logger.info("password_change_rejected", user_id=str(user_id))
            raise Unauthorized("Current password is incorrect")

        await self.users.update_password(user.id, self.hasher.hash(new_password))
        logger.info("password_changed", user_id=str(user_id))
