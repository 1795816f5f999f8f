"""
Domain exceptions.  The handler in main.py renders them as {"error", "details"}.
"""
from __future__ import annotations

from typing import Any, Optional


class StorefrontError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


# ── Client input ─────────────────────────────────────────────────────────────

class OrderValidationError(StorefrontError):
    status_code = 400
    message = "Invalid order"


class NotFound(StorefrontError):
    status_code = 404
    message = "Not found"


class Forbidden(StorefrontError):
    status_code = 403
    message = "Access denied"


class Conflict(StorefrontError):
    status_code = 409
    message = "Conflict"


# ── Data store ───────────────────────────────────────────────────────────────

class LedgerWriteError(StorefrontError):
    status_code = 500
    message = "Error creating the order"


# ── Payment gateway ──────────────────────────────────────────────────────────

class GatewayError(StorefrontError):
    """The gateway refused the request; retrying the same request will not help."""
    status_code = 502
    message = "Payment gateway rejected the request"


class GatewayUnavailable(StorefrontError):
    """Timeout or connection failure; the request may be retried."""
    status_code = 503
    message = "Payment gateway unavailable, please retry"


class InvalidWebhook(StorefrontError):
    status_code = 400
    message = "Webhook signature verification failed"


# ── Reconciliation ───────────────────────────────────────────────────────────

class OrderNotFound(StorefrontError):
    status_code = 500
    message = "Order referenced by the payment event does not exist"


class IncompletePaymentEvent(StorefrontError):
    status_code = 500
    message = "Payment event lacks the charged amount"
