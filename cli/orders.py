#!/usr/bin/env python3
"""
CLI: inspect orders and reconcile them against Stripe.

Usage:
    # Create the tables (development / SQLite)
    python -m cli.orders --init-db

    # List orders, optionally by status
    python -m cli.orders --list
    python -m cli.orders --list --status pending

    # Show one order with its lines and payment
    python -m cli.orders --show 42

    # Re-check a pending order's checkout session and mark it paid if Stripe says so
    python -m cli.orders --reconcile 42
"""
from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy import select

from storefront.config import get_settings
from storefront.database import build_engine, build_session_factory, get_db_ctx
from storefront.errors import StorefrontError
from storefront.models import ORDER_PENDING, Base, Order, Payment
from storefront.services.checkout import StripeGateway
from storefront.services.inventory import build_decrementer
from storefront.services.ledger import list_orders
from storefront.services.reconciler import PAYMENT_STATUS_PAID, mark_order_paid


async def cmd_init_db(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Tables created.")


async def cmd_list(factory, status: str | None) -> None:
    async with get_db_ctx(factory) as session:
        rows = await list_orders(session, status)

    if not rows:
        print("No orders found.")
        return

    print(f"\n{'ID':<8} {'STATUS':<9} {'TOTAL':>12} {'CUR':<4} {'USER':<38} CREATED")
    print("-" * 100)
    for o in rows:
        print(f"{o.id:<8} {o.status:<9} {o.total_amount:>12} {o.currency:<4} {o.user_id:<38} {o.created_at}")


async def cmd_show(factory, order_id: int) -> None:
    async with get_db_ctx(factory) as session:
        order = await session.get(Order, order_id)
        payment = (
            await session.execute(select(Payment).where(Payment.order_id == order_id))
        ).scalar_one_or_none()
    if order is None:
        print(f"ERROR: order {order_id} not found", file=sys.stderr)
        sys.exit(1)

    print(f"\nOrder {order.id}  [{order.status}]  user={order.user_id}")
    print(f"  Address:  {order.shipping_address}")
    print(f"  Phone:    {order.contact_phone}")
    print(f"  Total:    {order.total_amount} {order.currency}")
    print(f"  Session:  {order.checkout_session_id or '-'}")
    print(f"\n  {'PRODUCT':<10} {'QTY':>5} {'UNIT':>12} {'SUBTOTAL':>12}")
    for line in order.lines:
        print(f"  {line.product_id:<10} {line.quantity:>5} {line.unit_price:>12} {line.quantity * line.unit_price:>12}")
    if payment:
        print(f"\n  Paid {payment.amount} via {payment.method} ({payment.external_reference}) at {payment.created_at}")


async def cmd_reconcile(factory, order_id: int) -> None:
    settings = get_settings()
    gateway = StripeGateway(settings)

    async with get_db_ctx(factory) as session:
        order = await session.get(Order, order_id)
    if order is None:
        print(f"ERROR: order {order_id} not found", file=sys.stderr)
        sys.exit(1)
    if order.status != ORDER_PENDING:
        print(f"Order {order_id} is already {order.status}; nothing to do.")
        return
    if not order.checkout_session_id:
        print(f"ERROR: order {order_id} has no checkout session", file=sys.stderr)
        sys.exit(1)

    try:
        cs = await gateway.retrieve_checkout_session(order.checkout_session_id)
    except StorefrontError as exc:
        print(f"ERROR: {exc.message}: {exc.details}", file=sys.stderr)
        sys.exit(1)

    if cs.payment_status != PAYMENT_STATUS_PAID:
        print(f"Checkout session {cs.id} reports payment_status={cs.payment_status}; order stays pending.")
        return

    if cs.amount_total is None:
        print(f"ERROR: checkout session {cs.id} reports no amount_total", file=sys.stderr)
        sys.exit(1)

    async with get_db_ctx(factory) as session:
        outcome = await mark_order_paid(
            session,
            order_id=order_id,
            amount=int(cs.amount_total),
            external_reference=str(cs.payment_intent or cs.id),
            method=settings.payment_method_label,
            decrementer=build_decrementer(settings),
        )
    print(f"Order {order_id}: {outcome.value}")


async def _run(args: argparse.Namespace) -> None:
    engine = build_engine(get_settings())
    factory = build_session_factory(engine)
    try:
        if args.init_db:
            await cmd_init_db(engine)
        elif args.show is not None:
            await cmd_show(factory, args.show)
        elif args.reconcile is not None:
            await cmd_reconcile(factory, args.reconcile)
        else:
            await cmd_list(factory, args.status)
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Storefront orders CLI")
    parser.add_argument("--init-db", action="store_true", help="Create database tables")
    parser.add_argument("--list", action="store_true", help="List orders (default)")
    parser.add_argument("--status", choices=["pending", "paid"], help="Filter --list by status")
    parser.add_argument("--show", type=int, metavar="ORDER_ID", help="Show one order")
    parser.add_argument("--reconcile", type=int, metavar="ORDER_ID",
                        help="Mark a pending order paid if its Stripe session is paid")
    asyncio.run(_run(parser.parse_args()))


if __name__ == "__main__":
    main()
