"""
Database models for Run Your Trip
"""

from .user import User
from .template import Template
from .purchase import Purchase, PurchaseStatus
from .analytics import AnalyticsEvent, AnalyticsEventType
from .subscription import Subscription, SubscriptionTier, SubscriptionStatus

__all__ = [
    "User",
    "Template",
    "Purchase",
    "PurchaseStatus",
    "AnalyticsEvent",
    "AnalyticsEventType",
    "Subscription",
    "SubscriptionTier",
    "SubscriptionStatus"
]
