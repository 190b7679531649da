"""
Transactional email service (SendGrid)
Purchase confirmations and password resets with branded templates
"""

import logging
from typing import Dict, Any, Optional

import jinja2
import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content

from config import settings

logger = logging.getLogger(__name__)

# Brand colors
BRAND_COLORS = {
    "primary": "#FF7A2E",
    "background": "#28282D",
    "card": "#3A3A40",
    "text": "#EFEFEF",
    "muted": "#9E9E9E",
}


class EmailDeliveryError(Exception):
    """Raised when the mail provider rejects a message"""
    pass


class EmailService:
    """SendGrid-backed transactional email"""

    def __init__(self, api_key: Optional[str] = None):
        self.template_env = jinja2.Environment(
            loader=jinja2.DictLoader(self._get_built_in_templates()),
            autoescape=jinja2.select_autoescape(["html", "xml"])
        )

        api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self.client = sendgrid.SendGridAPIClient(api_key=api_key) if api_key else None

        if self.client:
            logger.info("SendGrid email provider initialized")
        else:
            logger.warning("SENDGRID_API_KEY not configured - emails will be disabled")

    def _get_built_in_templates(self) -> Dict[str, str]:
        """Built-in email templates"""
        return {
            "layout.html": """
            <!DOCTYPE html>
            <html>
            <head><meta charset="utf-8"><title>{{ title }}</title></head>
            <body style="background: {{ colors.background }}; font-family: Arial, sans-serif; margin: 0; padding: 24px;">
              <div style="max-width: 600px; margin: 0 auto;">
                {% block content %}{% endblock %}
                <p style="color: {{ colors.muted }}; font-size: 12px; text-align: center; margin-top: 32px;">
                  {{ app_name }} &middot; <a href="mailto:{{ support_email }}" style="color: {{ colors.primary }};">{{ support_email }}</a>
                </p>
              </div>
            </body>
            </html>
            """,

            "purchase_confirmation.html": """
            {% extends "layout.html" %}
            {% block content %}
            <h1 style="color: {{ colors.text }}; text-align: center;">Thank You for Your Purchase!</h1>
            <p style="color: {{ colors.muted }}; text-align: center;">
              Your <strong style="color: {{ colors.primary }};">{{ product_name }}</strong> is ready to download.
            </p>
            <div style="background: {{ colors.card }}; border-radius: 12px; padding: 24px; color: {{ colors.text }};">
              <ul>
                <li>Complete template source code</li>
                <li>Documentation and setup guide</li>
                <li>Responsive design for all devices</li>
              </ul>
            </div>
            <p style="text-align: center; margin: 32px 0;">
              <a href="{{ download_url }}" style="background: {{ colors.primary }}; color: white; padding: 16px 48px; text-decoration: none; border-radius: 8px; font-weight: bold;">Download Now</a>
            </p>
            <p style="color: {{ colors.muted }}; font-size: 12px; text-align: center;">
              This download link will expire in {{ expires_in }}.
            </p>
            {% endblock %}
            """,

            "purchase_confirmation.txt": """Thank you for your purchase!

Your {{ product_name }} is ready to download:
{{ download_url }}

This download link will expire in {{ expires_in }}.

{{ app_name }} - {{ support_email }}
""",

            "password_reset.html": """
            {% extends "layout.html" %}
            {% block content %}
            <h1 style="color: {{ colors.text }}; text-align: center;">Reset Your Password</h1>
            <p style="color: {{ colors.muted }}; text-align: center;">
              We received a request to reset your password.
            </p>
            <p style="text-align: center; margin: 32px 0;">
              <a href="{{ reset_url }}" style="background: {{ colors.primary }}; color: white; padding: 16px 48px; text-decoration: none; border-radius: 8px; font-weight: bold;">Reset Password</a>
            </p>
            <p style="color: {{ colors.muted }}; font-size: 12px; text-align: center;">
              This link will expire in {{ expires_in }}. If you didn't request this, please ignore this email.
            </p>
            {% endblock %}
            """,

            "password_reset.txt": """Reset your password:
{{ reset_url }}

This link will expire in {{ expires_in }}. If you didn't request this, please ignore this email.
""",
        }

    def is_enabled(self) -> bool:
        """Check if email service is configured"""
        return self.client is not None

    def _render(self, template_name: str, template_data: Dict[str, Any]) -> Dict[str, str]:
        context = {
            "app_name": settings.APP_NAME,
            "support_email": settings.SUPPORT_EMAIL,
            "colors": BRAND_COLORS,
            **template_data,
        }
        return {
            "html": self.template_env.get_template(f"{template_name}.html").render(**context),
            "text": self.template_env.get_template(f"{template_name}.txt").render(**context),
        }

    def _send(self, to_email: str, subject: str, template_name: str, template_data: Dict[str, Any]) -> bool:
        """Render and deliver one message; raises EmailDeliveryError on provider failure"""
        content = self._render(template_name, template_data)

        message = Mail(
            from_email=Email(settings.SENDGRID_FROM_EMAIL, settings.SENDGRID_FROM_NAME),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", content["html"]),
            plain_text_content=Content("text/plain", content["text"])
        )

        try:
            response = self.client.send(message)
        except Exception as e:
            logger.error(f"SendGrid error sending '{template_name}' to {to_email}: {e}")
            raise EmailDeliveryError(str(e)) from e

        if response.status_code not in (200, 202):
            raise EmailDeliveryError(f"SendGrid returned status {response.status_code}")

        return True

    def send_purchase_confirmation(self, to_email: str, product_name: str, download_url: str) -> bool:
        """Send purchase confirmation email with download link"""
        if not self.is_enabled():
            logger.warning(f"Email not sent (SendGrid not configured): purchase confirmation for {product_name}")
            return False

        self._send(
            to_email=to_email,
            subject=f"Your {product_name} is Ready!",
            template_name="purchase_confirmation",
            template_data={
                "product_name": product_name,
                "download_url": download_url,
                "expires_in": f"{settings.DOWNLOAD_TOKEN_EXPIRY_DAYS} days",
            }
        )
        logger.info(f"Purchase confirmation sent to: {to_email}")
        return True

    def send_password_reset(self, to_email: str, reset_token: str) -> bool:
        """Send password reset email"""
        if not self.is_enabled():
            logger.warning("Email not sent (SendGrid not configured): password reset")
            return False

        self._send(
            to_email=to_email,
            subject=f"Reset Your Password - {settings.APP_NAME}",
            template_name="password_reset",
            template_data={
                "reset_url": f"{settings.PUBLIC_BASE_URL}/reset-password?token={reset_token}",
                "expires_in": f"{settings.PASSWORD_RESET_TOKEN_EXPIRY_HOURS} hour",
            }
        )
        logger.info(f"Password reset email sent to: {to_email}")
        return True


# Global email service instance
email_service = EmailService()
