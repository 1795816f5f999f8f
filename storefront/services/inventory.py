"""
Inventory decrement for paid orders.

Two interchangeable backends:
  - LedgerInventoryDecrementer: records one stock_movement per order line
    (unique per line + event type) and adjusts products.stock in the caller's
    transaction.  Re-running it for the same order is a no-op.
  - ProcedureInventoryDecrementer: delegates to a stored function inside the
    database (see migrations/001_init.sql).

Neither commits; the caller owns the transaction, and failures propagate.
"""
from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import Settings
from storefront.models import OrderLine, Product, StockMovement

logger = logging.getLogger(__name__)

ORDER_PAID_EVENT = "order_paid"


class InventoryDecrementer(Protocol):
    async def decrement_for_order(self, session: AsyncSession, order_id: int) -> None:
        ...


async def apply_line_decrement(
    session: AsyncSession,
    order_id: int,
    line: OrderLine,
    event_type: str = ORDER_PAID_EVENT,
) -> Tuple[bool, int]:
    """
    Decrement stock for one order line and record the movement.

    Returns (was_new_movement, new_stock).
    Idempotent: a second call for the same (line, event_type) changes nothing.
    Stock is floored at zero.
    """
    existing = (
        await session.execute(
            select(StockMovement.id).where(
                StockMovement.order_line_id == line.id,
                StockMovement.event_type == event_type,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        current = await get_stock(session, line.product_id)
        logger.info(
            "Duplicate stock movement skipped: order=%s line=%s product=%s type=%s",
            order_id, line.id, line.product_id, event_type,
        )
        return False, current

    # The unique constraint backs up the check above; a concurrent insert
    # surfaces as IntegrityError and aborts the caller's transaction.
    session.add(
        StockMovement(
            order_id=order_id,
            order_line_id=line.id,
            product_id=line.product_id,
            delta=-line.quantity,
            event_type=event_type,
        )
    )
    await session.flush()

    # with_for_update() is PostgreSQL-only; SQLite ignores the clause.
    product = (
        await session.execute(
            select(Product).where(Product.id == line.product_id).with_for_update()
        )
    ).scalar_one_or_none()

    if product is None:
        logger.warning(
            "Product %s of order %s no longer exists; movement recorded without stock change",
            line.product_id, order_id,
        )
        return True, 0

    new_stock = product.stock - line.quantity
    if new_stock < 0:
        logger.warning(
            "Stock floor hit for product=%s (would go %d -> %d); clamping to 0",
            product.id, product.stock, new_stock,
        )
        new_stock = 0

    product.stock = new_stock
    logger.info(
        "Stock updated: product=%s delta=%+d new_stock=%d (order=%s)",
        product.id, -line.quantity, new_stock, order_id,
    )
    return True, new_stock


async def get_stock(session: AsyncSession, product_id: int) -> int:
    """Return current stock for a product (0 if unknown)."""
    row = await session.get(Product, product_id)
    return row.stock if row else 0


class LedgerInventoryDecrementer:
    async def decrement_for_order(self, session: AsyncSession, order_id: int) -> None:
        await self.apply(session, order_id)

    async def apply(self, session: AsyncSession, order_id: int) -> List[Tuple[int, bool, int]]:
        """Returns [(product_id, was_new, new_stock), ...] in line order."""
        lines = (
            await session.execute(
                select(OrderLine).where(OrderLine.order_id == order_id).order_by(OrderLine.id)
            )
        ).scalars().all()

        results = []
        for line in lines:
            was_new, stock = await apply_line_decrement(session, order_id, line)
            results.append((line.product_id, was_new, stock))
        return results


class ProcedureInventoryDecrementer:
    def __init__(self, procedure: str) -> None:
        if not procedure.replace("_", "").isalnum():
            raise ValueError(f"Invalid stock procedure name: {procedure!r}")
        self._sql = text(f"SELECT {procedure}(:order_id)")

    async def decrement_for_order(self, session: AsyncSession, order_id: int) -> None:
        await session.execute(self._sql, {"order_id": order_id})
        logger.info("Stock procedure applied for order %s", order_id)


def build_decrementer(settings: Settings) -> InventoryDecrementer:
    if settings.inventory_backend == "procedure":
        return ProcedureInventoryDecrementer(settings.stock_procedure)
    return LedgerInventoryDecrementer()
