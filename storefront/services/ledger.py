"""
Order ledger: records a submitted cart as a pending order plus its lines.

The order row and its line rows are written in one transaction, so a failure
while inserting lines never leaves an order without lines behind.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import LedgerWriteError, OrderValidationError
from storefront.models import ORDER_PENDING, Order, OrderLine, Product
from storefront.schemas import CartEntry, OrderCreate

logger = logging.getLogger(__name__)


def order_total(lines: Iterable) -> int:
    """Sum of quantity × unit price, in minor units."""
    return sum(line.quantity * line.unit_price for line in lines)


def _require_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def _check_against_catalog(session: AsyncSession, items: Sequence[CartEntry]) -> None:
    """Every entry must name an existing product at its current catalog price."""
    wanted = {item.product_id for item in items}
    prices = dict(
        (
            await session.execute(
                select(Product.id, Product.price).where(Product.id.in_(wanted))
            )
        ).all()
    )
    missing = sorted(wanted - set(prices))
    if missing:
        raise OrderValidationError(
            "El carrito contiene productos que no existen.",
            details={"unknown_products": missing},
        )

    stale = [
        {"product_id": item.product_id, "cart_price": item.unit_price, "price": prices[item.product_id]}
        for item in items
        if item.unit_price != prices[item.product_id]
    ]
    if stale:
        logger.warning("Cart price mismatch rejected: %s", stale)
        raise OrderValidationError(
            "El precio de algunos productos cambió. Actualiza tu carrito.",
            details={"price_mismatch": stale},
        )


async def create_order(
    session: AsyncSession,
    user_id: str,
    request: OrderCreate,
    currency: str,
) -> Order:
    """
    Validate the cart and persist it as a pending order.

    Commits on success.  Raises OrderValidationError for bad input (nothing
    written) and LedgerWriteError when the data store rejects the inserts
    (everything rolled back).
    """
    if not request.items:
        raise OrderValidationError("No hay items en el carrito")

    address = _require_text(request.shipping_address)
    phone = _require_text(request.contact_phone)
    if not address or not phone:
        raise OrderValidationError("La dirección y el teléfono son requeridos.")

    await _check_against_catalog(session, request.items)

    order = Order(
        user_id=user_id,
        shipping_address=address,
        contact_phone=phone,
        notes=_require_text(request.notes),
        status=ORDER_PENDING,
        total_amount=order_total(request.items),
        currency=currency,
        lines=[
            OrderLine(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in request.items
        ],
    )
    try:
        # one flush: the order row first, then its lines with the new order id
        session.add(order)
        await session.flush()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Order insert failed for user=%s: %s", user_id, exc)
        raise LedgerWriteError(details=str(exc)) from exc

    logger.info(
        "Order %s created: user=%s lines=%d total=%d %s",
        order.id, user_id, len(request.items), order.total_amount, currency,
    )
    return order


async def attach_checkout_session(
    session: AsyncSession, order_id: int, checkout_session_id: str
) -> None:
    order = await session.get(Order, order_id)
    if order is None:
        return
    order.checkout_session_id = checkout_session_id
    await session.commit()


async def discard_order(session: AsyncSession, order_id: int) -> None:
    """Compensating delete for an order whose checkout session was refused."""
    order = await session.get(Order, order_id)
    if order is None or order.status != ORDER_PENDING:
        return
    await session.delete(order)
    await session.commit()
    logger.warning("Discarded pending order %s after gateway refusal", order_id)


async def list_user_orders(session: AsyncSession, user_id: str) -> List[Order]:
    return list(
        (
            await session.execute(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
            )
        ).scalars()
    )


async def list_orders(session: AsyncSession, status: str | None = None) -> List[Order]:
    stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status:
        stmt = stmt.where(Order.status == status)
    return list((await session.execute(stmt)).scalars())
