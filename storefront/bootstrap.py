"""Construction of services from settings."""

from datetime import timedelta

from storefront.config import Settings
from storefront.repositories.user_repository import UserStore
from storefront.services.auth_service import AuthService
from storefront.services.email_service import Mailer
from storefront.services.password_hasher import PasswordHasher
from storefront.services.token_service import Clock, TokenService, utc_now


def build_token_service(settings: Settings, clock: Clock = utc_now) -> TokenService:
    return TokenService(
        secret=settings.jwt_secret,
        ttl=timedelta(minutes=settings.jwt_expire_minutes),
        clock=clock,
    )


def build_auth_service(
    settings: Settings,
    users: UserStore,
    mailer: Mailer,
    clock: Clock = utc_now,
) -> AuthService:
    """Wire an AuthService from configuration and its collaborators."""
    return AuthService(
        users=users,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=build_token_service(settings, clock),
        mailer=mailer,
        password_reset_ttl=timedelta(minutes=settings.password_reset_expire_minutes),
        clock=clock,
    )
