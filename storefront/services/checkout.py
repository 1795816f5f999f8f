"""
Hosted checkout through Stripe.

StripeGateway is built once by the entry point and passed to handlers; the
API key travels with each call instead of living on the ``stripe`` module.
SDK calls are blocking, so they run in a worker thread bounded by
``gateway_timeout_seconds``.
"""
from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence

import stripe

from storefront.config import Settings
from storefront.errors import GatewayError, GatewayUnavailable, InvalidWebhook
from storefront.schemas import CartEntry

logger = logging.getLogger(__name__)

# Errors where the gateway may or may not have acted; the caller can retry.
_TRANSIENT = (stripe.APIConnectionError, stripe.RateLimitError)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def build_line_items(items: Sequence[CartEntry], currency: str) -> List[Dict[str, Any]]:
    """Cart entries in Stripe's ``price_data`` line-item format."""
    line_items = []
    for item in items:
        product_data: Dict[str, Any] = {"name": item.name or f"Producto {item.product_id}"}
        if item.image_url:
            product_data["images"] = [item.image_url]
        line_items.append(
            {
                "price_data": {
                    "currency": currency,
                    "product_data": product_data,
                    "unit_amount": item.unit_price,
                },
                "quantity": item.quantity,
            }
        )
    return line_items


class StripeGateway:
    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._timeout = settings.gateway_timeout_seconds
        self._currency = settings.checkout_currency
        self._success_url = settings.success_url
        self._cancel_url = settings.cancel_url

    @property
    def currency(self) -> str:
        return self._currency

    async def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        call = functools.partial(fn, *args, api_key=self._api_key, **kwargs)
        try:
            return await asyncio.wait_for(asyncio.to_thread(call), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Stripe %s timed out after %.1fs", what, self._timeout)
            raise GatewayUnavailable(details=f"{what} timed out") from exc
        except _TRANSIENT as exc:
            logger.error("Stripe %s failed transiently: %s", what, exc)
            raise GatewayUnavailable(details=str(exc)) from exc
        except stripe.StripeError as exc:
            logger.error("Stripe %s rejected: %s", what, exc)
            raise GatewayError(details=str(exc)) from exc

    async def create_checkout_session(
        self, order_id: int, items: Sequence[CartEntry]
    ) -> CheckoutSession:
        """
        Open a hosted checkout page for *order_id*.

        The order id goes into the session metadata, which is how the webhook
        finds the order again.  The idempotency key makes a resubmission for
        the same order return the same session.
        """
        session = await self._call(
            "checkout session create",
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=build_line_items(items, self._currency),
            mode="payment",
            success_url=self._success_url,
            cancel_url=self._cancel_url,
            client_reference_id=str(order_id),
            metadata={"order_id": str(order_id)},
            idempotency_key=f"checkout-order-{order_id}",
        )
        logger.info("Checkout session %s opened for order %s", session.id, order_id)
        return CheckoutSession(id=session.id, url=session.url)

    async def retrieve_checkout_session(self, session_id: str) -> Any:
        return await self._call(
            "checkout session retrieve", stripe.checkout.Session.retrieve, session_id
        )

    def construct_event(self, payload: bytes, signature: str | None) -> Dict[str, Any]:
        """
        Verify the signature over the raw body, then parse it.

        Returns the event as a plain dict.  Raises InvalidWebhook when the
        secret is missing, the signature does not match, or the body is not
        JSON; nothing is parsed before verification succeeds.
        """
        if not self._webhook_secret:
            # fail closed: without a secret nothing can be verified
            logger.error("STRIPE_WEBHOOK_SECRET is not configured – rejecting webhook")
            raise InvalidWebhook(details="webhook secret not configured")
        if not signature:
            raise InvalidWebhook(details="missing stripe-signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidWebhook("Invalid payload", details=str(exc)) from exc

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Webhook signature mismatch: %s", exc)
            raise InvalidWebhook("Invalid signature", details=str(exc)) from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise InvalidWebhook("Invalid payload", details=str(exc)) from exc
        if not isinstance(event, dict) or "type" not in event:
            raise InvalidWebhook("Invalid payload", details="not a gateway event")
        return event
