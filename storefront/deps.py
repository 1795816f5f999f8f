"""
FastAPI dependency utilities: current user, capability checks, webhook
signature verification, and access to the clients built at startup.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.authz import ROLE_CUSTOMER, Action, CurrentUser, authorize
from storefront.database import get_db
from storefront.models import Profile
from storefront.services.auth_client import AuthClient
from storefront.services.checkout import StripeGateway
from storefront.services.inventory import InventoryDecrementer

logger = logging.getLogger(__name__)


def get_auth_client(request: Request) -> AuthClient:
    return request.app.state.auth_client


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway


def get_decrementer(request: Request) -> InventoryDecrementer:
    return request.app.state.decrementer


async def get_current_user(
    authorization: str | None = Header(default=None),
    auth_client: AuthClient = Depends(get_auth_client),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve ``Authorization: Bearer <token>`` through the auth provider."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided. Unauthorized.",
        )
    token = authorization.removeprefix("Bearer ").strip()

    try:
        user = await auth_client.get_user(token)
    except httpx.HTTPError as exc:
        logger.error("Auth provider unreachable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth provider unavailable",
        )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token. Unauthorized.",
        )

    profile = await db.get(Profile, user.id)
    role = profile.role if profile else ROLE_CUSTOMER
    return CurrentUser(id=user.id, email=user.email, role=role)


def require(action: Action) -> Callable[..., Any]:
    """Dependency factory: the current user must be allowed to perform *action*."""

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not authorize(user, action):
            logger.info("Denied %s to user=%s role=%s", action.value, user.id, user.role)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied.",
            )
        return user

    return _check


async def verify_stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    gateway: StripeGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    """
    Verify the gateway's signature over the raw body.
    Returns the parsed event; raises InvalidWebhook (400) otherwise.
    """
    body = await request.body()
    return gateway.construct_event(body, stripe_signature)
