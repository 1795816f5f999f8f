"""
Shared pytest fixtures – in-memory SQLite for unit tests (no real Postgres needed).
"""
from __future__ import annotations

import hashlib
import hmac
import os
import time
from typing import AsyncGenerator

# Configure test env before any storefront import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_storefront"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_storefront"
os.environ["SUPABASE_URL"] = "https://project.supabase.test"
os.environ["SUPABASE_SERVICE_KEY"] = "service-key"
os.environ["CHECKOUT_CURRENCY"] = "cop"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from storefront.authz import ROLE_CUSTOMER, CurrentUser  # noqa: E402
from storefront.config import get_settings  # noqa: E402
from storefront.deps import get_current_user  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models import Base, Product  # noqa: E402
from storefront.services.checkout import StripeGateway  # noqa: E402
from storefront.services.inventory import LedgerInventoryDecrementer  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


def stripe_signature(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``stripe-signature`` header the way Stripe signs webhooks."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{body.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def sign():
    return stripe_signature


@pytest_asyncio.fixture(scope="function")
async def db_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(TEST_DB_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_factory) -> AsyncGenerator[AsyncSession, None]:
    async with db_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def seed_products(db_factory):
    """Products 7 (stock 10) and 8 (stock 3)."""
    async with db_factory() as session:
        session.add(Product(id=7, name="Balón", price=5000, image_url="https://img/7.png", stock=10))
        session.add(Product(id=8, name="Camiseta", price=12000, image_url="https://img/8.png", stock=3))
        await session.commit()


class UserHolder:
    """Who the test client is authenticated as; None means anonymous."""

    def __init__(self) -> None:
        self.user: CurrentUser | None = CurrentUser(id="user-1", email="u1@example.com", role=ROLE_CUSTOMER)


@pytest.fixture
def as_user() -> UserHolder:
    return UserHolder()


@pytest_asyncio.fixture(scope="function")
async def client(db_factory, as_user) -> AsyncGenerator[AsyncClient, None]:
    """API client with test DB, a real gateway object and overridable identity."""
    from fastapi import HTTPException

    app.state.session_factory = db_factory
    app.state.gateway = StripeGateway(get_settings())
    app.state.decrementer = LedgerInventoryDecrementer()

    async def override_current_user() -> CurrentUser:
        if as_user.user is None:
            raise HTTPException(status_code=401, detail="No token provided. Unauthorized.")
        return as_user.user

    app.dependency_overrides[get_current_user] = override_current_user

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
