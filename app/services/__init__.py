"""
Service layer for the Run Your Trip backend
"""

from .auth_service import AuthService
from .token_service import TokenService, token_service
from .email_service import EmailService, email_service
from .analytics_service import AnalyticsService
from .purchase_service import PurchaseService
from .subscription_service import SubscriptionService
from .stripe_webhook_service import StripeWebhookService

__all__ = [
    "AuthService",
    "TokenService",
    "token_service",
    "EmailService",
    "email_service",
    "AnalyticsService",
    "PurchaseService",
    "SubscriptionService",
    "StripeWebhookService",
]
