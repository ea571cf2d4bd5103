"""Outbound email notifications for account lifecycle events."""

from email.message import EmailMessage
from html import escape
from typing import Optional, Protocol

import aiosmtplib
import structlog

from credential_service.config import Settings
from credential_service.services.errors import NotificationDeliveryError
from credential_service.services.logging_service import mask_email

logger = structlog.get_logger(__name__)

RESET_LINK_PATH = "/auth/reset-password"

WELCOME_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Welcome {display_name}!</h2>
  <p>Thank you for registering with us. Your account has been successfully created.</p>
  <p>You can now log in and start using our services.</p>
  <p style="color: #666; font-size: 14px; margin-top: 32px;">Best regards,<br/>The Team</p>
</div>
"""

RESET_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Password Reset Request</h2>
  <p>You requested to reset your password. Click the button below to reset it:</p>
  <a href="{reset_url}" style="display: inline-block; padding: 12px 24px; background-color: #007bff; color: white; text-decoration: none; border-radius: 4px; margin: 16px 0;">Reset Password</a>
  <p style="color: #666; font-size: 14px;">Or copy and paste this link in your browser:</p>
  <p style="color: #007bff; word-break: break-all;">{reset_url}</p>
  <p style="color: #666; font-size: 14px;">This link will expire in {expire_minutes} minutes.</p>
  <p style="color: #666; font-size: 14px;">If you didn't request this, please ignore this email.</p>
</div>
"""


class Notifier(Protocol):
    """Message channel used by the lifecycle engine."""

    async def send_welcome(self, email: str, name: Optional[str] = None) -> None: ...

    async def send_password_reset(self, email: str, raw_secret: str) -> None: ...


def build_reset_url(app_url: str, raw_secret: str) -> str:
    """Build the password reset link carrying the unhashed secret."""
    return f"{app_url.rstrip('/')}{RESET_LINK_PATH}?token={raw_secret}"


class EmailNotifier:
    """Notifier that delivers HTML email over SMTP.

    Both send methods raise NotificationDeliveryError on failure; whether that
    is fatal is decided by the caller.
    """

    def __init__(self, settings: Settings, reset_expire_minutes: int = 15):
        self.settings = settings
        self.reset_expire_minutes = reset_expire_minutes

    def _build_message(self, to_email: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content("Please view this message in an HTML capable email client.")
        message.add_alternative(html, subtype="html")
        return message

    async def _send(self, message: EmailMessage, kind: str) -> None:
        to_email = message["To"]
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.email_host,
                port=self.settings.email_port,
                username=self.settings.email_user or None,
                password=self.settings.email_password or None,
                start_tls=self.settings.email_use_tls,
            )
        except Exception as e:
            logger.error(
                "email_send_failed",
                kind=kind,
                to=mask_email(to_email),
                error=str(e),
            )
            raise NotificationDeliveryError(f"Failed to send {kind} email") from e

        logger.info("email_sent", kind=kind, to=mask_email(to_email))

    async def send_welcome(self, email: str, name: Optional[str] = None) -> None:
        html = WELCOME_TEMPLATE.format(display_name=escape(name or "there"))
        await self._send(self._build_message(email, "Welcome to Our App!", html), "welcome")

    async def send_password_reset(self, email: str, raw_secret: str) -> None:
        html = RESET_TEMPLATE.format(
            reset_url=build_reset_url(self.settings.app_url, raw_secret),
            expire_minutes=self.reset_expire_minutes,
        )
        await self._send(self._build_message(email, "Password Reset Request", html), "password_reset")
