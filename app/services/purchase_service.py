"""
Purchase recording for completed checkouts

Stripe delivers webhooks at least once, so recording is idempotent: the
unique constraints on purchases.transaction_id and (user_id, template_id)
turn a replayed event into a no-op.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.analytics import AnalyticsEventType
from app.models.purchase import Purchase, PurchaseStatus
from app.models.template import Template
from app.services.analytics_service import AnalyticsService
from app.services.email_service import email_service
from app.services.token_service import token_service, build_download_url

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# SQLSTATE unique_violation (PostgreSQL)
UNIQUE_VIOLATION_PGCODE = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the driver reports a unique constraint, not NOT NULL or FK"""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_PGCODE:
        return True
    return "UNIQUE constraint failed" in str(orig)


def minor_units_to_decimal(amount: Optional[int]) -> Decimal:
    """Convert a gateway minor-unit integer (cents) to a 2-place decimal"""
    return (Decimal(amount or 0) / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)


class PurchaseService:
    """Records purchases and fans out their side effects"""

    @staticmethod
    def get_purchase(db: Session, purchase_id: int) -> Optional[Purchase]:
        return db.query(Purchase).filter(Purchase.id == purchase_id).first()

    @staticmethod
    def get_purchase_by_transaction_id(db: Session, transaction_id: str) -> Optional[Purchase]:
        return db.query(Purchase).filter(Purchase.transaction_id == transaction_id).first()

    @staticmethod
    def list_user_purchases(db: Session, user_id: str) -> List[Purchase]:
        return db.query(Purchase).filter(
            Purchase.user_id == user_id
        ).order_by(desc(Purchase.purchase_date), desc(Purchase.id)).all()

    @staticmethod
    def increment_template_counter(db: Session, template_id: int, column: str) -> bool:
        """Atomic UPDATE ... SET col = col + 1; returns False on failure"""
        counter = getattr(Template, column)
        try:
            updated = db.query(Template).filter(Template.id == template_id).update(
                {counter: counter + 1},
                synchronize_session=False
            )
            db.commit()
            return updated > 0
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to increment {column} for template {template_id}: {e}")
            return False

    @staticmethod
    def _insert_purchase(db: Session, purchase: Purchase) -> Optional[Purchase]:
        """
        Insert, or return None when a unique constraint says we already did.
        Any other integrity failure propagates.
        """
        try:
            db.add(purchase)
            db.commit()
            db.refresh(purchase)
            return purchase
        except IntegrityError as e:
            db.rollback()
            if not is_unique_violation(e):
                logger.error(f"Failed to record purchase for session {purchase.transaction_id}: {e.orig}")
                raise
            logger.info(
                f"Purchase for session {purchase.transaction_id} already recorded, skipping: {e.orig}"
            )
            return None

    @staticmethod
    def complete_checkout(db: Session, session: Dict[str, Any]) -> Optional[Purchase]:
        """
        Handle a completed Stripe checkout session.

        Returns the new purchase, or None when the event was malformed, the
        template is gone, or the purchase was already recorded. Database errors
        other than uniqueness violations propagate so Stripe retries.
        """
        session_id = session.get("id")
        metadata = session.get("metadata") or {}
        product_id = metadata.get("productId")
        user_id = metadata.get("userId")
        product_name = metadata.get("productName")

        logger.info(f"Checkout session completed: {session_id}")

        if not product_id or not user_id:
            logger.error(
                f"Missing metadata in checkout session {session_id}: productId={product_id}, userId={user_id}"
            )
            return None

        try:
            template_id = int(product_id)
        except (TypeError, ValueError):
            logger.error(f"Non-numeric productId '{product_id}' in checkout session {session_id}")
            return None

        template = db.query(Template).filter(Template.id == template_id).first()
        if not template:
            logger.error(f"Template not found for checkout session {session_id}: {template_id}")
            return None

        if session_id and PurchaseService.get_purchase_by_transaction_id(db, session_id):
            logger.info(f"Duplicate delivery of checkout session {session_id}, ignoring")
            return None

        customer_email = session.get("customer_email") or (session.get("customer_details") or {}).get("email")

        purchase = PurchaseService._insert_purchase(db, Purchase(
            user_id=str(user_id),
            template_id=template_id,
            seller_id=template.user_id,
            purchase_price=minor_units_to_decimal(session.get("amount_total")),
            transaction_id=session_id,
            payment_method="stripe",
            status=PurchaseStatus.COMPLETED.value,
            details={
                "stripeSessionId": session_id,
                "customerEmail": customer_email,
                "paymentStatus": session.get("payment_status"),
            },
        ))
        if purchase is None:
            return None

        logger.info(f"Purchase recorded: {purchase.id}")

        PurchaseService.increment_template_counter(db, template_id, "sales")

        download_url = build_download_url(purchase.id, token_service.issue_download_token(purchase.id))

        if customer_email:
            PurchaseService._send_confirmation(customer_email, product_name or template.name, download_url, purchase.id)

        AnalyticsService.record_event(
            db,
            AnalyticsEventType.PURCHASE,
            user_id=str(user_id),
            template_id=template_id,
            event_data={
                "amount": float(purchase.purchase_price),
                "currency": session.get("currency"),
                "stripeSessionId": session_id,
            }
        )

        logger.info(f"Purchase flow completed for purchase {purchase.id}, user {user_id}")
        return purchase

    @staticmethod
    def _send_confirmation(to_email: str, product_name: str, download_url: str, purchase_id: int) -> bool:
        """The purchase stands even if the email never goes out"""
        try:
            sent = email_service.send_purchase_confirmation(to_email, product_name, download_url)
            if not sent:
                logger.warning(f"Confirmation email for purchase {purchase_id} was not sent")
            return sent
        except Exception as e:
            logger.error(f"Failed to send confirmation email for purchase {purchase_id}: {e}")
            return False
