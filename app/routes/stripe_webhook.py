"""
Stripe webhook endpoint
Receives the raw request body so the signature can be checked byte for byte
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from config import settings
from app.services.stripe_webhook_service import StripeWebhookService, WebhookSignatureInvalid

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhook")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: Session = Depends(get_db)
):
    """Handle Stripe webhook notifications"""

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook secret not configured"}
        )

    if not stripe_signature:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing signature"}
        )

    # Get raw body for signature verification
    body = await request.body()

    try:
        event = StripeWebhookService.verify_event(body, stripe_signature)
    except WebhookSignatureInvalid as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Webhook Error: {e}"}
        )

    try:
        StripeWebhookService.dispatch(db, event)
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing webhook {event.get('type')} ({event.get('id')}): {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook processing failed"}
        )

    return {"received": True}
