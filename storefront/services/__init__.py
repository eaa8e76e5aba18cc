"""Services package exports."""

from storefront.services.auth_service import AuthResult, AuthService
from storefront.services.email_service import EmailService, Mailer
from storefront.services.logging_service import configure_logging, get_logger
from storefront.services.password_hasher import PasswordHasher
from storefront.services.token_service import TokenClaims, TokenService

__all__ = [
    "AuthResult",
    "AuthService",
    "EmailService",
    "Mailer",
    "PasswordHasher",
    "TokenClaims",
    "TokenService",
    "configure_logging",
    "get_logger",
]
