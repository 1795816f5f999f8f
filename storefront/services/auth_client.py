"""
Thin client for the hosted auth provider (Supabase GoTrue REST API, no SDK).

Resolves a browser's bearer token to the user it belongs to.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from storefront.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


class AuthClient:
    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=settings.supabase_url.rstrip("/") + "/auth/v1",
            headers={"apikey": settings.supabase_service_key},
            timeout=httpx.Timeout(settings.auth_timeout_seconds),
            transport=transport,
        )

    async def get_user(self, token: str) -> Optional[AuthUser]:
        """
        Return the user owning *token*, or None if the provider rejects it.
        Transport failures propagate so callers can answer 5xx instead of 401.
        """
        resp = await self._client.get(
            "/user", headers={"Authorization": f"Bearer {token}"}
        )
        if resp.status_code in (401, 403):
            return None
        if not resp.is_success:
            logger.error(
                "Auth provider error status=%d body=%s",
                resp.status_code, resp.text[:300],
            )
            resp.raise_for_status()

        data = resp.json()
        user_id = data.get("id")
        if not user_id:
            return None
        return AuthUser(id=str(user_id), email=data.get("email"))

    async def aclose(self) -> None:
        await self._client.aclose()
