"""
Payment provider webhooks.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from barsuite.core.database import get_db
from barsuite.services import subscription as subscription_service
from barsuite.services.subscription import stripe_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    db: Session = Depends(get_db)
):
    """
    Receive Stripe events. The signature is verified before anything is read
    from the payload; redelivered events are safe to apply again.
    """
    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    payload = await request.body()
    event = stripe_gateway.construct_webhook_event(payload, stripe_signature)
    logger.info(f"Received Stripe event {event['id']} ({event['type']})")

    subscription_service.handle_provider_event(db, event)
    return {"received": True}
