"""
Email service for account verification mail via SMTP.
"""

from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from urllib.parse import urlencode

import aiosmtplib

from retailpos.core.config import settings
from retailpos.core.errors import MailDeliveryError
from retailpos.core.logging import get_logger

logger = get_logger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.smtp_use_tls = settings.SMTP_USE_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> None:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body content
            text_content: Plain text fallback (optional)

        Raises:
            MailDeliveryError: if the SMTP exchange fails
        """
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email

        # Text part first so clients prefer the HTML one
        if text_content:
            message.attach(MIMEText(text_content, "plain", "utf-8"))
        message.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.smtp_use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise MailDeliveryError() from e

        logger.info(f"Email sent successfully to {to_email}")

    def verification_link(self, token: str) -> str:
        return f"{self.frontend_url}/verify-email?{urlencode({'token': token})}"

    async def send_verification_email(self, to_email: str, token: str) -> None:
        """Send the link that completes a pending registration."""
        link = self.verification_link(token)

        html_content = f"""
        <p>Thanks for signing up! Please click the link below to verify your email address:</p>
        <p><a href="{link}">Verify my email address</a></p>
        """
        text_content = f"Thanks for signing up! Verify your email address here:\n{link}"

        await self.send_email(
            to_email=to_email,
            subject="Verify your email address",
            html_content=html_content,
            text_content=text_content,
        )


# Singleton instance
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
