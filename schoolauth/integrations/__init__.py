"""
Third-party integrations.

E-mail goes through AWS SES; errors are reported to Sentry when a DSN is
configured. Both stay inert without their settings.
"""

from schoolauth.integrations.email import EmailService, TEMPLATES
from schoolauth.integrations.sentry import init_sentry, filter_event

__all__ = [
    # Email
    "EmailService",
    "TEMPLATES",
    # Sentry
    "init_sentry",
    "filter_event",
]
