"""
Email Service for Reqquli
=========================
Sends account verification emails over SMTP.

When SMTP credentials are not configured (local development, tests) the
verification link is logged instead so accounts can still be verified.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from datetime import datetime

from app.core.config import settings
from app.core.logging_config import logger


class EmailService:
    """Async email service using SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        return await self._send_via_smtp(to_email, subject, html_content, text_content)

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SMTP"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject

            # Plain text first so clients prefer the HTML part
            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.use_tls
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    async def send_verification_email(
        self,
        to_email: str,
        user_name: str,
        verification_token: str
    ) -> bool:
        """Send email verification link to a new user"""
        verification_link = settings.verification_url(verification_token)

        if not self.is_configured:
            logger.info(f"[Email] Verification link for {to_email}: {verification_link}")
            return False

        subject = "Verify your email - Reqquli"
        expiry_hours = settings.VERIFICATION_TOKEN_EXPIRE_HOURS

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <h1>Welcome to Reqquli</h1>
                <p>Hi {user_name or 'there'},</p>
                <p>Please verify your email address to activate your account.</p>
                <p style="text-align: center;">
                    <a href="{verification_link}"
                       style="display: inline-block; background: #2563eb; color: white; padding: 12px 24px;
                              text-decoration: none; border-radius: 6px;">Verify Email Address</a>
                </p>
                <p style="font-size: 14px; color: #6b7280;">
                    Or copy and paste this link in your browser:<br>
                    <code>{verification_link}</code>
                </p>
                <p style="font-size: 14px; color: #6b7280;">This link will expire in {expiry_hours} hours.</p>
                <p style="font-size: 12px; color: #6b7280;">&copy; {datetime.utcnow().year} Reqquli.
                   If you didn't create an account, please ignore this email.</p>
            </div>
        </body>
        </html>
        """

        text_content = (
            f"Welcome to Reqquli\n\n"
            f"Hi {user_name or 'there'},\n\n"
            f"Please verify your email address by opening the link below:\n\n"
            f"{verification_link}\n\n"
            f"This link will expire in {expiry_hours} hours.\n"
        )

        return await self.send_email(to_email, subject, html_content, text_content)


email_service = EmailService()
