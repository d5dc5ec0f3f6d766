"""Service for sending emails."""

import html
import logging
import os
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.domain.models.user import User, UserType

logger = logging.getLogger(__name__)

_WELCOME_SUBJECTS = {
    UserType.ESCORT: "Welcome to {brand}!",
    UserType.MEMBER: "Welcome to {brand}, your member account is ready",
    UserType.AGENCY: "Welcome to {brand}, your agency is ready to publish",
    UserType.CLUB: "Welcome to {brand}, your club is ready to publish",
}

_WELCOME_NEXT_STEPS = {
    UserType.ESCORT: "Complete your profile and upload photos to publish your advertisement.",
    UserType.MEMBER: "Browse listings, save your searches and leave reviews.",
    UserType.AGENCY: "Add your agency details and start creating advertisements for your team.",
    UserType.CLUB: "Add your opening hours and photos so visitors can find your club.",
}


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "Classifieds",
        frontend_base_url: str = "http://localhost:3000",
        verification_expiration_hours: int = 24,
        password_reset_expiration_minutes: int = 30,
    ):
        self.smtp_host = smtp_host or os.getenv("SMTP_HOST", "")
        self.smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
        self.smtp_username = smtp_username or os.getenv("SMTP_USERNAME", "")
        self.smtp_password = smtp_password or os.getenv("SMTP_PASSWORD", "")
        self.from_email = from_email or os.getenv("SMTP_FROM_EMAIL", "")
        self.from_name = from_name
        self.frontend_base_url = frontend_base_url.rstrip("/")
        self.verification_expiration_hours = verification_expiration_hours
        self.password_reset_expiration_minutes = password_reset_expiration_minutes
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)

    def send_verification_email(self, to_email: str, verification_token: str) -> bool:
        """
        Send email verification email.

        Args:
            to_email: Recipient email
            verification_token: Verification token

        Returns:
            True if sent successfully, False otherwise
        """
        verification_url = f"{self.frontend_base_url}/verify-email?token={verification_token}"

        if not self.enabled:
            # Development fallback: surface the link in the logs.
            logger.info("SMTP disabled; verification URL for %s: %s", to_email, verification_url)
            return True

        subject = f"Verify your email - {self.from_name}"
        html_body = self._layout(
            title="Verify your email",
            paragraphs=[
                "Hello,",
                "Please confirm your email address by clicking the button below:",
            ],
            action_url=verification_url,
            action_label="Verify email",
            footnote=(
                f"This link expires in {self.verification_expiration_hours} hours. "
                "If you did not create this account, you can ignore this email."
            ),
        )
        text_body = f"""
        {self.from_name} - Email verification

        Please confirm your email address by opening the link below:
        {verification_url}

        This link expires in {self.verification_expiration_hours} hours.

        If you did not create this account, you can ignore this email.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def send_welcome_email(self, user: User) -> bool:
        """Send the post-verification welcome email tailored to the account type."""
        if not self.enabled:
            logger.info("SMTP disabled; skipping welcome email for %s", user.email)
            return True

        name = user.display_name
        subject = _WELCOME_SUBJECTS[user.user_type].format(brand=self.from_name)
        next_steps = _WELCOME_NEXT_STEPS[user.user_type]
        html_body = self._layout(
            title=f"Welcome, {name}!",
            paragraphs=[
                "Your email has been verified and your account is now active.",
                next_steps,
            ],
            action_url=f"{self.frontend_base_url}/login",
            action_label="Go to my account",
            footnote=None,
        )
        text_body = f"""
        Welcome to {self.from_name}, {name}!

        Your email has been verified and your account is now active.
        {next_steps}

        {self.frontend_base_url}/login
        """

        return self._send_email(user.email, subject, html_body, text_body)

    def send_password_reset_email(self, to_email: str, reset_token: str) -> bool:
        """
        Send the password reset link.

        The raw token only travels inside the email body; it is never logged.
        """
        if not self.enabled:
            logger.info("SMTP disabled; password reset email for %s not sent", to_email)
            return True

        reset_url = f"{self.frontend_base_url}/reset-password?token={reset_token}"
        subject = f"Reset your password - {self.from_name}"
        html_body = self._layout(
            title="Reset your password",
            paragraphs=[
                "We received a request to reset the password of your account.",
                "Click the button below to choose a new password:",
            ],
            action_url=reset_url,
            action_label="Reset password",
            footnote=(
                f"This link expires in {self.password_reset_expiration_minutes} minutes and "
                "can only be used once. If you did not request it, you can ignore this email."
            ),
        )
        text_body = f"""
        {self.from_name} - Password reset

        Open the link below to choose a new password:
        {reset_url}

        This link expires in {self.password_reset_expiration_minutes} minutes and can only be used once.

        If you did not request it, you can ignore this email.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def _layout(
        self,
        title: str,
        paragraphs: list[str],
        action_url: str,
        action_label: str,
        footnote: Optional[str],
    ) -> str:
        """Render the HTML part. Every text argument is escaped before interpolation."""
        brand = html.escape(self.from_name)
        title = html.escape(title)
        action_url = html.escape(action_url, quote=True)
        action_label = html.escape(action_label)
        body = "".join(
            f'<p style="color: #475569; line-height: 1.6; margin-bottom: 20px;">{html.escape(text)}</p>'
            for text in paragraphs
        )
        note = (
            f'<p style="color: #64748b; font-size: 14px; margin-top: 30px;">{html.escape(footnote)}</p>'
            if footnote
            else ""
        )
        year = datetime.now(timezone.utc).year
        return f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background-color: #0f172a; padding: 30px; border-radius: 10px; text-align: center;">
                    <h1 style="color: #93c5fd; margin: 0;">{brand}</h1>
                </div>

                <div style="padding: 30px 0;">
                    <h2 style="color: #1e293b; margin-bottom: 20px;">{title}</h2>
                    {body}
                    <div style="text-align: center; margin: 30px 0;">
                        <a href="{action_url}"
                           style="background-color: #3b82f6; color: white; padding: 15px 30px;
                                  text-decoration: none; border-radius: 5px; display: inline-block;
                                  font-weight: bold;">
                            {action_label}
                        </a>
                    </div>
                    {note}
                </div>

                <div style="border-top: 1px solid #e2e8f0; padding-top: 20px; text-align: center;">
                    <p style="color: #94a3b8; font-size: 12px;">
                        &copy; {year} {brand}. All rights reserved.
                    </p>
                </div>
            </body>
        </html>
        """

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_body: HTML body
            text_body: Plain text body

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            part1 = MIMEText(text_body, "plain", "utf-8")
            part2 = MIMEText(html_body, "html", "utf-8")

            msg.attach(part1)
            msg.attach(part2)

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            logger.info("Email '%s' sent to %s", subject, to_email)
            return True

        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            return False
