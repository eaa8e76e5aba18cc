"""Transactional email delivery over SMTP."""

from email.message import EmailMessage
from typing import Protocol
from urllib.parse import urlencode

import aiosmtplib
import structlog

from storefront.config import Settings

logger = structlog.get_logger(__name__)

PASSWORD_RESET_SUBJECT = "Reset your Pet Food Delivery password"
WELCOME_SUBJECT = "Welcome to Pet Food Delivery"


class Mailer(Protocol):
    """Outbound email used by the auth service. Sends return success as bool."""

    async def send_password_reset_email(
        self, to_email: str, first_name: str, reset_token: str
    ) -> bool:
        ...

    async def send_welcome_email(self, to_email: str, first_name: str) -> bool:
        ...


class EmailService:
    """Service for sending account emails via SMTP."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def password_reset_link(self, reset_token: str) -> str:
        base = self.settings.frontend_url.rstrip("/")
        return f"{base}/reset-password?{urlencode({'token': reset_token})}"

    async def send_password_reset_email(
        self, to_email: str, first_name: str, reset_token: str
    ) -> bool:
        """Email a password reset link carrying the raw token.

        Returns True on success, False on failure.
        """
        ttl = self.settings.password_reset_expire_minutes
        body = (
            f"Hi {first_name},\n\n"
            f"We received a request to reset your password. "
            f"Use the link below within {ttl} minutes:\n\n"
            f"{self.password_reset_link(reset_token)}\n\n"
            f"If you did not request this, you can ignore this email.\n\n"
            f"---\n"
            f"Pet Food Delivery"
        )
        return await self._send(to_email, PASSWORD_RESET_SUBJECT, body, "password_reset")

    async def send_welcome_email(self, to_email: str, first_name: str) -> bool:
        """Send the post-registration welcome email.

        Returns True on success, False on failure.
        """
        body = (
            f"Hi {first_name},\n\n"
            f"Thanks for creating an account. Your pets' favourite food is "
            f"now a few clicks away:\n\n"
            f"{self.settings.frontend_url.rstrip('/')}/products\n\n"
            f"---\n"
            f"Pet Food Delivery"
        )
        return await self._send(to_email, WELCOME_SUBJECT, body, "welcome")

    async def _send(self, to_email: str, subject: str, body: str, template: str) -> bool:
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.smtp_host,
                port=self.settings.smtp_port,
                username=self.settings.smtp_username or None,
                password=self.settings.smtp_password or None,
                use_tls=self.settings.smtp_use_tls,
                timeout=self.settings.smtp_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                "email_send_failed",
                to=to_email,
                template=template,
                error=str(e),
            )
            return False

        logger.info("email_sent", to=to_email, template=template)
        return True
