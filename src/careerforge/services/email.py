"""Transactional email: verification links and password resets."""

import logging
from abc import ABC, abstractmethod
from email.message import EmailMessage
from html import escape

import aiosmtplib
import httpx

from careerforge.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailBackend(ABC):
    """Delivers one message; returns False instead of raising on failure."""

    def __init__(self, from_address: str = "", reply_to: str | None = None):
        self.from_address = from_address
        self.reply_to = reply_to

    @abstractmethod
    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        ...


class ConsoleEmailBackend(EmailBackend):
    """Logs messages instead of sending them (development)."""

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        logger.info(f"[Email][Console] To: {to} | Subject: {subject}\n{text or html}")
        return True


class SMTPEmailBackend(EmailBackend):
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
        reply_to: str | None = None,
    ):
        super().__init__(from_address, reply_to)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        if self.reply_to:
            message["Reply-To"] = self.reply_to
        message.set_content(text or "")
        message.add_alternative(html, subtype="html")

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
            )
        except Exception as e:
            logger.error(f"[Email][SMTP] Failed to send to {to}: {e!r}")
            return False
        logger.info(f"[Email][SMTP] Sent to {to}")
        return True


class ResendEmailBackend(EmailBackend):
    def __init__(self, api_key: str, from_address: str, reply_to: str | None = None):
        super().__init__(from_address, reply_to)
        self.api_key = api_key

    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        body = {"from": self.from_address, "to": [to], "subject": subject, "html": html, "text": text}
        if self.reply_to:
            body["reply_to"] = self.reply_to

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[Email][Resend] API error {e.response.status_code}: {e.response.text}")
            return False
        except httpx.HTTPError as e:
            logger.error(f"[Email][Resend] Failed to send to {to}: {e!r}")
            return False
        logger.info(f"[Email][Resend] Sent to {to}")
        return True


def get_email_backend() -> EmailBackend:
    """Build the backend named by ``settings.email_backend``."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    if settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
            reply_to=settings.support_email,
        )
    if settings.email_backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            reply_to=settings.support_email,
        )
    raise ValueError(f"Unknown email backend: {settings.email_backend}")


def _render(heading: str, greeting: str, body: str, button_label: str, link: str, footer: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="text-align: center; margin-bottom: 30px;">
        <h1 style="color: #1a1a1a; margin: 0;">CareerForge</h1>
    </div>

    <div style="background: #f9fafb; border-radius: 8px; padding: 30px; margin-bottom: 30px;">
        <h2 style="margin-top: 0; color: #1a1a1a;">{heading}</h2>
        <p>{greeting}</p>
        <p>{body}</p>

        <div style="text-align: center; margin: 30px 0;">
            <a href="{link}"
               style="background: #2563eb; color: white; padding: 12px 30px; border-radius: 6px; text-decoration: none; font-weight: 500; display: inline-block;">
                {button_label}
            </a>
        </div>

        <p style="color: #666; font-size: 14px;">{footer}</p>
    </div>

    <div style="text-align: center; color: #666; font-size: 12px;">
        <p>
            If the button doesn't work, copy and paste this link into your browser:<br>
            <a href="{link}" style="color: #2563eb; word-break: break-all;">{link}</a>
        </p>
    </div>
</body>
</html>
"""


class EmailService:
    """High-level email service for sending application emails."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        """Lazy-load the backend."""
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification_link(self, to: str, name: str, link: str) -> bool:
        """Send an email verification link.

        Args:
            to: Recipient email address
            name: Recipient display name (HTML-escaped before rendering)
            link: The full verification URL

        Returns:
            True if sent successfully
        """
        subject = "CareerForge: Verify your email address"
        hours = settings.verification_token_expiration_minutes // 60

        html = _render(
            heading="Verify your email address",
            greeting=f"Dear {escape(name)},",
            body=(
                "Thank you for registering with CareerForge. To complete your account setup, "
                f"please verify your email address. This link will expire in {hours} hours."
            ),
            button_label="Verify my email",
            link=link,
            footer="If you did not create an account, you can safely ignore this email.",
        )

        text = f"""
Verify your email address
=========================

Dear {name},

Thank you for registering with CareerForge. Open the link below to verify
your email address. This link will expire in {hours} hours.

{link}

If you did not create an account, you can safely ignore this email.
"""

        return await self.backend.send(to=to, subject=subject, html=html, text=text)

    async def send_password_reset(self, to: str, name: str, link: str) -> bool:
        """Send a password reset link."""
        subject = "CareerForge: Password reset request"
        minutes = settings.password_reset_expiration_minutes

        html = _render(
            heading="Reset your password",
            greeting=f"Dear {escape(name)},",
            body=(
                "You are receiving this email because a password reset was requested for your "
                f"account. This link will expire in {minutes} minutes."
            ),
            button_label="Reset your password",
            link=link,
            footer=(
                "If you did not request this, please ignore this email and your password "
                "will remain unchanged."
            ),
        )

        text = f"""
Reset your password
===================

Dear {name},

Open the link below to reset your CareerForge password.
This link will expire in {minutes} minutes.

{link}

If you did not request this, please ignore this email.
"""

        return await self.backend.send(to=to, subject=subject, html=html, text=text)


# Global email service instance
email_service = EmailService()
