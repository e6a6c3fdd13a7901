# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending address in the AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourschool.org
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#      - APP_URL=https://portal.yourschool.org   (base of the links)
#
# Without SES credentials, messages are logged instead of sent.
#
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from schoolauth.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Email Templates
# =============================================================================

_BODY_STYLE = "font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;"
_BUTTON_STYLE = (
    "display: inline-block; padding: 10px 20px; background-color: #4CAF50; "
    "color: white; text-decoration: none; border-radius: 4px;"
)

TEMPLATES = {
    "verify_email": {
        "subject": "Verify your email address",
        "html": f"""
        <html>
        <body style="{_BODY_STYLE}">
            <h2>Welcome, {{name}}!</h2>
            <p>Please verify your email address by clicking the button below:</p>
            <p><a href="{{verify_url}}" style="{_BUTTON_STYLE}">Verify Email</a></p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {{verify_url}}</p>
            <p style="color: #666; font-size: 14px;">This link expires in {{expires_hours}} hours.</p>
        </body>
        </html>
        """,
        "text": """
Welcome, {name}!

Please verify your email address by visiting:
{verify_url}

This link expires in {expires_hours} hours.
        """,
    },

    "password_reset": {
        "subject": "Reset your password",
        "html": f"""
        <html>
        <body style="{_BODY_STYLE}">
            <h2>Reset Your Password</h2>
            <p>Hello {{name}}, we received a request to reset your password.</p>
            <p><a href="{{reset_url}}" style="{_BUTTON_STYLE}">Reset Password</a></p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {{reset_url}}</p>
            <p style="color: #666; font-size: 14px;">This link expires in {{expires_hours}} hours.</p>
            <p style="color: #666; font-size: 14px;">If you didn't request this, you can safely ignore this email.</p>
        </body>
        </html>
        """,
        "text": """
Hello {name},

We received a request to reset your password. Visit this link to choose a new one:
{reset_url}

This link expires in {expires_hours} hours.

If you didn't request this, you can safely ignore this email.
        """,
    },

    "admin_invite": {
        "subject": "Complete your admin registration",
        "html": f"""
        <html>
        <body style="{_BODY_STYLE}">
            <h2>Complete Your Admin Registration</h2>
            <p>Please click the button below to complete registration:</p>
            <p><a href="{{registration_url}}" style="{_BUTTON_STYLE}">Complete Registration</a></p>
            <p style="color: #666; font-size: 14px;">Or copy this link: {{registration_url}}</p>
            <p style="color: #666; font-size: 14px;">This link expires in {{expires_hours}} hours.</p>
        </body>
        </html>
        """,
        "text": """
Complete your admin registration by visiting:
{registration_url}

This link expires in {expires_hours} hours.
        """,
    },

    "password_changed": {
        "subject": "Your password was changed",
        "html": f"""
        <html>
        <body style="{_BODY_STYLE}">
            <h2>Password changed</h2>
            <p>Hello {{name}}, the password for your account was just changed.</p>
            <p>If this wasn't you, reset your password immediately and contact the school office.</p>
        </body>
        </html>
        """,
        "text": """
Hello {name},

The password for your account was just changed.
If this wasn't you, reset your password immediately and contact the school office.
        """,
    },
}


# =============================================================================
# Email Service
# =============================================================================


class EmailService:
    """Send emails via AWS SES."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._client = None

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return self.settings.use_aws and bool(self.settings.aws_ses_from_email)

    def link(self, path: str, **params: str) -> str:
        base = self.settings.app_url.rstrip("/")
        url = f"{base}/{path.lstrip('/')}"
        return f"{url}?{urlencode(params)}" if params else url

    async def send(
        self,
        to: str,
        template: str,
        data: dict[str, Any] | None = None,
        subject_override: str | None = None,
    ) -> bool:
        """
        Send an email using a template.

        Args:
            to: Recipient email address
            template: Template name (e.g., "verify_email", "password_reset")
            data: Template variables to substitute
            subject_override: Override the template's subject

        Returns:
            True if sent successfully, False otherwise
        """
        if template not in TEMPLATES:
            logger.error(f"Unknown email template: {template}")
            return False

        tpl = TEMPLATES[template]
        data = data or {}

        if not self.is_configured:
            # Links carry live tokens; only the template name leaves the process
            logger.warning(f"Email not configured - would send '{template}' to {to}")
            return False

        try:
            subject = subject_override or tpl["subject"]
            html_body = tpl["html"].format(**data)
            text_body = tpl["text"].format(**data)

            response = self.client.send_email(
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                        "Text": {"Data": text_body, "Charset": "UTF-8"},
                    },
                },
            )

            logger.info(f"Email sent to {to}: {template} (MessageId: {response['MessageId']})")
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False
        except KeyError as e:
            logger.error(f"Missing template variable for '{template}': {e}")
            return False

    async def send_verification(self, email: str, name: str, token: str) -> bool:
        """Send the email-verification link."""
        return await self.send(
            to=email,
            template="verify_email",
            data={
                "name": name,
                "verify_url": self.link("verify-email", token=token),
                "expires_hours": self.settings.verification_token_ttl_hours,
            },
        )

    async def send_password_reset(self, email: str, name: str, token: str, role: str) -> bool:
        """Send the password reset link."""
        return await self.send(
            to=email,
            template="password_reset",
            data={
                "name": name,
                "reset_url": self.link("reset-password", token=token, role=role),
                "expires_hours": self.settings.reset_token_ttl_hours,
            },
        )

    async def send_admin_invite(self, email: str, token: str) -> bool:
        """Send the administrator registration link."""
        return await self.send(
            to=email,
            template="admin_invite",
            data={
                "registration_url": self.link(f"register/admin/{token}"),
                "expires_hours": self.settings.admin_invite_ttl_hours,
            },
        )

    async def send_password_changed(self, email: str, name: str) -> bool:
        """Tell the account owner their password changed."""
        return await self.send(to=email, template="password_changed", data={"name": name})
