"""
Payment reconciliation: turns a verified gateway event into a paid order.

For a ``checkout.session.completed`` whose ``payment_status`` is ``paid``
the following run in ONE transaction:
  1. pending -> paid as a conditional UPDATE (only rows still pending match),
  2. insert the payment row,
  3. record the gateway event id,
  4. decrement inventory for the order's lines.
If the UPDATE matches nothing the order is already paid and the event is a
redelivery; nothing else runs.  Any failure rolls everything back and is
re-raised so the webhook answers 5xx and the gateway redelivers.
"""
from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import IncompletePaymentEvent, OrderNotFound
from storefront.models import (
    ORDER_PAID,
    ORDER_PENDING,
    PAYMENT_COMPLETED,
    Order,
    Payment,
    WebhookEvent,
)
from storefront.services.inventory import InventoryDecrementer

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_STATUS_PAID = "paid"


class ReconcileOutcome(str, enum.Enum):
    PAID = "paid"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


def extract_order_id(checkout_session: Mapping[str, Any]) -> Optional[int]:
    """Order id from ``metadata.order_id``, falling back to ``client_reference_id``."""
    metadata = checkout_session.get("metadata") or {}
    for raw in (metadata.get("order_id"), checkout_session.get("client_reference_id")):
        if raw is None or raw == "":
            continue
        try:
            return int(str(raw))
        except ValueError:
            return None
    return None


async def mark_order_paid(
    session: AsyncSession,
    order_id: int,
    amount: int,
    external_reference: str,
    method: str,
    decrementer: InventoryDecrementer,
    event_id: Optional[str] = None,
    event_type: str = CHECKOUT_COMPLETED,
) -> ReconcileOutcome:
    """
    Apply the pending -> paid transition exactly once and commit.

    Returns PAID on the effective transition, DUPLICATE when the order was
    already paid.  Raises OrderNotFound for an unknown order.
    """
    try:
        result = await session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == ORDER_PENDING)
            .values(status=ORDER_PAID, paid_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            exists = (
                await session.execute(select(Order.id).where(Order.id == order_id))
            ).scalar_one_or_none()
            await session.rollback()
            if exists is None:
                raise OrderNotFound(details={"order_id": order_id})
            logger.info("Order %s already paid; event %s is a redelivery", order_id, event_id)
            return ReconcileOutcome.DUPLICATE

        total = (
            await session.execute(select(Order.total_amount).where(Order.id == order_id))
        ).scalar_one()
        if total != amount:
            logger.error(
                "Amount mismatch for order %s: lines total %d, gateway charged %d",
                order_id, total, amount,
            )

        session.add(
            Payment(
                order_id=order_id,
                amount=amount,
                method=method,
                external_reference=external_reference,
                status=PAYMENT_COMPLETED,
                event_id=event_id,
            )
        )
        if event_id:
            session.add(
                WebhookEvent(event_id=event_id, event_type=event_type, order_id=order_id)
            )
        await session.flush()

        await decrementer.decrement_for_order(session, order_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Order %s paid: amount=%d reference=%s event=%s",
        order_id, amount, external_reference, event_id,
    )
    return ReconcileOutcome.PAID


async def reconcile_event(
    session: AsyncSession,
    event: Mapping[str, Any],
    decrementer: InventoryDecrementer,
    method: str = "Stripe",
) -> ReconcileOutcome:
    """Handle one verified gateway event."""
    event_type = event["type"]
    event_id = event.get("id")

    if event_type != CHECKOUT_COMPLETED:
        logger.debug("Ignoring gateway event %s of type %s", event_id, event_type)
        return ReconcileOutcome.IGNORED

    checkout_session = (event.get("data") or {}).get("object")
    if not isinstance(checkout_session, Mapping):
        logger.warning("Event %s of type %s carries no checkout session; ignoring", event_id, event_type)
        return ReconcileOutcome.IGNORED

    order_id = extract_order_id(checkout_session)
    if order_id is None:
        logger.warning(
            "Checkout session %s carries no usable order_id; ignoring event %s",
            checkout_session.get("id"), event_id,
        )
        return ReconcileOutcome.IGNORED

    if event_id:
        seen = (
            await session.execute(
                select(WebhookEvent.id).where(WebhookEvent.event_id == event_id)
            )
        ).scalar_one_or_none()
        if seen is not None:
            logger.info("Event %s already processed", event_id)
            return ReconcileOutcome.DUPLICATE

    payment_status = checkout_session.get("payment_status")
    if payment_status != PAYMENT_STATUS_PAID:
        logger.info(
            "Checkout session %s for order %s reports payment_status=%s; order stays pending",
            checkout_session.get("id"), order_id, payment_status,
        )
        return ReconcileOutcome.IGNORED

    amount = checkout_session.get("amount_total")
    if amount is None:
        raise IncompletePaymentEvent(details={"event_id": event_id, "order_id": order_id})

    reference = checkout_session.get("payment_intent") or checkout_session.get("id")
    return await mark_order_paid(
        session,
        order_id=order_id,
        amount=int(amount),
        external_reference=str(reference),
        method=method,
        decrementer=decrementer,
        event_id=event_id,
        event_type=event_type,
    )
