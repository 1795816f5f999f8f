"""
Customer order endpoints.

POST /api/orders
GET  /api/user/orders
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.authz import Action, CurrentUser
from storefront.database import get_db
from storefront.deps import get_gateway, require
from storefront.errors import GatewayError
from storefront.schemas import CheckoutRedirect, OrderCreate, OrderOut
from storefront.services import ledger
from storefront.services.checkout import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["orders"])


@router.post("/orders", response_model=CheckoutRedirect)
async def create_order(
    body: OrderCreate,
    user: CurrentUser = Depends(require(Action.PLACE_ORDER)),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
) -> CheckoutRedirect:
    """
    Record the cart as a pending order, then open a hosted checkout session.
    The order is committed before the gateway is called, since the session
    metadata points at it.
    """
    order = await ledger.create_order(db, user.id, body, currency=gateway.currency)

    try:
        checkout = await gateway.create_checkout_session(order.id, body.items)
    except GatewayError:
        # definitive refusal: no session exists, so the order can never be paid
        await ledger.discard_order(db, order.id)
        raise

    await ledger.attach_checkout_session(db, order.id, checkout.id)
    return CheckoutRedirect(url=checkout.url)


@router.get("/user/orders", response_model=List[OrderOut])
async def my_orders(
    user: CurrentUser = Depends(require(Action.VIEW_OWN_ORDERS)),
    db: AsyncSession = Depends(get_db),
) -> List[OrderOut]:
    orders = await ledger.list_user_orders(db, user.id)
    return [OrderOut.model_validate(o) for o in orders]
