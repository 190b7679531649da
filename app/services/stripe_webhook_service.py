"""
Stripe webhook ingestion
Signature verification and event dispatch
"""

import json
import logging
from typing import Dict, Any, Optional, Union

import stripe
from sqlalchemy.orm import Session

from config import settings
from app.services.purchase_service import PurchaseService
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class WebhookSecretMissing(Exception):
    """STRIPE_WEBHOOK_SECRET is not configured"""
    pass


class WebhookSignatureInvalid(Exception):
    """The payload does not carry a valid Stripe signature"""
    pass


class StripeWebhookService:
    """Turns verified Stripe events into local state changes"""

    @staticmethod
    def verify_event(
        payload: Union[bytes, str],
        sig_header: Optional[str],
        secret: Optional[str] = None,
        tolerance: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Verify the raw request body against the stripe-signature header and
        return the decoded event. The body is checked exactly as received.
        """
        secret = settings.STRIPE_WEBHOOK_SECRET if secret is None else secret
        if not secret:
            raise WebhookSecretMissing("Webhook secret not configured")

        if isinstance(payload, bytes):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise WebhookSignatureInvalid("Invalid payload encoding") from e

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                sig_header,
                secret,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE if tolerance is None else tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureInvalid(str(e)) from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureInvalid(f"Invalid payload: {e}") from e

        if not isinstance(event, dict) or "type" not in event:
            raise WebhookSignatureInvalid("Invalid payload: not a Stripe event")

        return event

    @staticmethod
    def dispatch(db: Session, event: Dict[str, Any]) -> None:
        """Route one verified event to its handler; handler errors propagate"""
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        logger.info(f"Stripe webhook received: {event_type} ({event.get('id')})")

        if event_type == "checkout.session.completed":
            PurchaseService.complete_checkout(db, obj)

        elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
            SubscriptionService.upsert_from_stripe(db, obj)

        elif event_type == "customer.subscription.deleted":
            SubscriptionService.cancel_from_stripe(db, obj)

        elif event_type == "payment_intent.succeeded":
            StripeWebhookService._handle_payment_intent(db, obj)

        elif event_type == "invoice.payment_succeeded":
            logger.info(f"Invoice paid: {obj.get('id')}")

        else:
            logger.info(f"Unhandled event type: {event_type}")

    @staticmethod
    def _handle_payment_intent(db: Session, payment_intent: Dict[str, Any]) -> None:
        template_id = (payment_intent.get("metadata") or {}).get("templateId")
        if not template_id:
            logger.info(f"Payment intent {payment_intent.get('id')} carries no templateId")
            return

        try:
            template_id = int(template_id)
        except (TypeError, ValueError):
            logger.error(f"Non-numeric templateId '{template_id}' on payment intent {payment_intent.get('id')}")
            return

        if PurchaseService.increment_template_counter(db, template_id, "sales"):
            logger.info(f"Payment succeeded for template: {template_id}")
        else:
            logger.warning(f"Payment intent {payment_intent.get('id')} references unknown template {template_id}")
