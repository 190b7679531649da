"""
Subscription models
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Numeric, JSON
from sqlalchemy.sql import func

from database import Base


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enumeration"""
    ACTIVE = "active"
    PENDING = "pending"
    CANCELED = "canceled"
    EXPIRED = "expired"


class SubscriptionTier(Base):
    """Plan a subscriber pays for, mapped to a Stripe price"""
    __tablename__ = "subscription_tiers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    interval = Column(String(20), nullable=False, default="monthly")  # monthly, yearly
    stripe_price_id = Column(String(255), unique=True, nullable=True)
    features = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<SubscriptionTier(id={self.id}, slug='{self.slug}')>"


class Subscription(Base):
    """User subscription model, one row per user"""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    tier_id = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)

    # Stripe identifiers
    stripe_subscription_id = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)

    # Billing period
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id='{self.user_id}', status='{self.status}')>"
