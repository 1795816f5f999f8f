"""
Admin / operational endpoints.

GET  /admin/health
GET  /api/admin/orders          ?status=pending|paid
GET  /api/admin/orders/{id}
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.authz import Action, CurrentUser
from storefront.database import get_db
from storefront.deps import require
from storefront.errors import NotFound
from storefront.models import Order, Payment
from storefront.schemas import (
    HealthResponse,
    OrderDetail,
    OrderLineOut,
    OrderOut,
    PaymentOut,
)
from storefront.services import ledger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

view_all_orders = require(Action.VIEW_ALL_ORDERS)


@router.get("/admin/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        db_status = "error"
    return HealthResponse(status="ok", db=db_status)


@router.get("/api/admin/orders", response_model=List[OrderOut])
async def list_orders(
    status: Optional[str] = None,
    _: CurrentUser = Depends(view_all_orders),
    db: AsyncSession = Depends(get_db),
) -> List[OrderOut]:
    return [OrderOut.model_validate(o) for o in await ledger.list_orders(db, status)]


@router.get("/api/admin/orders/{order_id}", response_model=OrderDetail)
async def get_order(
    order_id: int,
    _: CurrentUser = Depends(view_all_orders),
    db: AsyncSession = Depends(get_db),
) -> OrderDetail:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    payment = (
        await db.execute(select(Payment).where(Payment.order_id == order_id))
    ).scalar_one_or_none()

    return OrderDetail(
        **OrderOut.model_validate(order).model_dump(),
        lines=[OrderLineOut.model_validate(line) for line in order.lines],
        payment=PaymentOut.model_validate(payment) if payment else None,
    )
