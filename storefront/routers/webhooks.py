"""
Payment gateway webhook receiver.

POST /api/stripe-webhook
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.database import get_db
from storefront.deps import get_decrementer, verify_stripe_webhook
from storefront.schemas import WebhookAck
from storefront.services.inventory import InventoryDecrementer
from storefront.services.reconciler import reconcile_event

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["webhooks"])


@router.post("/stripe-webhook", response_model=WebhookAck)
async def stripe_webhook(
    event: Dict[str, Any] = Depends(verify_stripe_webhook),
    db: AsyncSession = Depends(get_db),
    decrementer: InventoryDecrementer = Depends(get_decrementer),
) -> WebhookAck:
    """
    Receive a signed gateway event.  Idempotent: redelivering the same event,
    or a second event for an already paid order, changes nothing.

    Processing errors are NOT caught here: they become a 500, which makes the
    gateway redeliver until the order is reconciled.
    """
    outcome = await reconcile_event(
        db, event, decrementer, method=settings.payment_method_label
    )
    logger.info("Webhook %s (%s): %s", event.get("id"), event["type"], outcome.value)
    return WebhookAck(received=True)
