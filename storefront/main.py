"""
Storefront order & payment service – FastAPI entry point.

Clients for the database, the auth provider and the payment gateway are
built here at startup and published on ``app.state``; handlers reach them
through the dependencies in storefront.deps.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from storefront.config import get_settings
from storefront.database import build_engine, build_session_factory
from storefront.errors import StorefrontError
from storefront.routers import admin, catalog, orders, webhooks
from storefront.services.auth_client import AuthClient
from storefront.services.checkout import StripeGateway
from storefront.services.inventory import build_decrementer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s – %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="Storefront Orders",
    version="1.0.0",
    description="Catalog, orders and Stripe checkout reconciliation for the storefront.",
)

# ── Middleware ────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Exception handlers ────────────────────────────────────────────────────────

@app.exception_handler(StorefrontError)
async def _storefront_error(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    body = {"error": exc.message}
    if exc.details is not None:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(HTTPException)
async def _http_error(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(webhooks.router)
app.include_router(orders.router)
app.include_router(catalog.router)
app.include_router(admin.router)


# ── Startup / shutdown ────────────────────────────────────────────────────────

@app.on_event("startup")
async def _startup() -> None:
    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.auth_client = AuthClient(settings)
    app.state.gateway = StripeGateway(settings)
    app.state.decrementer = build_decrementer(settings)

    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET is empty – every webhook will be rejected")
    logger.info(
        "Storefront service ready (currency=%s, inventory=%s).",
        settings.checkout_currency, settings.inventory_backend,
    )


@app.on_event("shutdown")
async def _shutdown() -> None:
    await app.state.auth_client.aclose()
    await app.state.engine.dispose()
    logger.info("Storefront service stopped.")
