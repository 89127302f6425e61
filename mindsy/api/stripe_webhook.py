"""Stripe webhook endpoint."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.api.deps import get_stripe_gateway
from mindsy.db.session import get_db
from mindsy.services.billing import (
    SUPPORTED_WEBHOOK_EVENTS,
    InvalidWebhook,
    StripeGateway,
    billing_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Billing"])


@router.post(
    "/webhook",
    summary="Receive a Stripe event",
    description="Verifies the stripe-signature header and mirrors subscription state onto the profile.",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    payload = await request.body()
    try:
        event = gateway.construct_event(payload, stripe_signature)
    except InvalidWebhook as e:
        logger.warning(f"Rejected webhook: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    event_type = event.get("type", "")
    logger.info(f"Received Stripe event {event_type}")

    result = await billing_service.handle_event(db, event, gateway)
    if not result.success:
        await db.rollback()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": result.error, "event_type": event_type},
        )

    await db.commit()
    return {"received": True, "event_type": event_type, "details": result.details}


@router.get("/webhook", summary="Webhook endpoint info")
async def webhook_info():
    return {
        "message": "Stripe webhook endpoint",
        "supported_events": SUPPORTED_WEBHOOK_EVENTS,
    }
