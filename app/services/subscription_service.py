"""
Subscription lifecycle driven by Stripe subscription events
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from app.models.subscription import Subscription, SubscriptionTier, SubscriptionStatus

logger = logging.getLogger(__name__)

DEFAULT_TIER_ID = 1


def _from_epoch(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.utcfromtimestamp(int(value))


class SubscriptionService:
    """Keeps the per-user subscription row in step with Stripe"""

    @staticmethod
    def get_user_subscription(db: Session, user_id: str) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.user_id == user_id).first()

    @staticmethod
    def resolve_tier_id(db: Session, price_id: Optional[str]) -> int:
        """Map a Stripe price id to a tier; unknown prices land on the default tier"""
        if price_id:
            tier = db.query(SubscriptionTier).filter(SubscriptionTier.stripe_price_id == price_id).first()
            if tier:
                return tier.id
            logger.warning(f"No subscription tier for Stripe price {price_id}, using default tier")
        return DEFAULT_TIER_ID

    @staticmethod
    def _first_price_id(stripe_subscription: Dict[str, Any]) -> Optional[str]:
        items = (stripe_subscription.get("items") or {}).get("data") or []
        if not items:
            return None
        return (items[0].get("price") or {}).get("id")

    @staticmethod
    def upsert_from_stripe(db: Session, stripe_subscription: Dict[str, Any]) -> Optional[Subscription]:
        """Create or update the user's subscription from a Stripe subscription object"""
        user_id = (stripe_subscription.get("metadata") or {}).get("userId")
        if not user_id:
            logger.error(f"Missing userId in subscription metadata: {stripe_subscription.get('id')}")
            return None

        status = (
            SubscriptionStatus.ACTIVE.value
            if stripe_subscription.get("status") == "active"
            else SubscriptionStatus.PENDING.value
        )
        period_end = _from_epoch(stripe_subscription.get("current_period_end"))

        subscription = SubscriptionService.get_user_subscription(db, str(user_id))
        if subscription is None:
            subscription = Subscription(user_id=str(user_id))
            db.add(subscription)

        subscription.tier_id = SubscriptionService.resolve_tier_id(
            db, SubscriptionService._first_price_id(stripe_subscription)
        )
        subscription.status = status
        subscription.stripe_subscription_id = stripe_subscription.get("id")
        subscription.stripe_customer_id = stripe_subscription.get("customer")
        subscription.start_date = _from_epoch(stripe_subscription.get("current_period_start"))
        subscription.end_date = period_end
        subscription.next_billing_date = period_end
        subscription.auto_renew = not stripe_subscription.get("cancel_at_period_end", False)

        db.commit()
        db.refresh(subscription)

        logger.info(f"Subscription {status} for user: {user_id}")
        return subscription

    @staticmethod
    def cancel_from_stripe(db: Session, stripe_subscription: Dict[str, Any]) -> Optional[Subscription]:
        """Mark the user's subscription canceled"""
        user_id = (stripe_subscription.get("metadata") or {}).get("userId")
        if not user_id:
            logger.error(f"Missing userId in subscription metadata: {stripe_subscription.get('id')}")
            return None

        subscription = SubscriptionService.get_user_subscription(db, str(user_id))
        if subscription is None:
            logger.warning(f"No subscription on record to cancel for user: {user_id}")
            return None

        subscription.status = SubscriptionStatus.CANCELED.value
        subscription.auto_renew = False
        db.commit()
        db.refresh(subscription)

        logger.info(f"Subscription canceled for user: {user_id}")
        return subscription
