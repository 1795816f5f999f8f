"""
Capability checks.

Handlers ask ``authorize(user, action)``; only this module knows which roles
grant which actions.  Roles themselves come from the profiles table (see
deps.get_current_user).
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional


class Action(str, enum.Enum):
    PLACE_ORDER = "place_order"
    VIEW_OWN_ORDERS = "view_own_orders"
    WRITE_REVIEW = "write_review"
    MANAGE_CATALOG = "manage_catalog"
    VIEW_ALL_ORDERS = "view_all_orders"


ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

_CUSTOMER_ACTIONS = frozenset(
    {Action.PLACE_ORDER, Action.VIEW_OWN_ORDERS, Action.WRITE_REVIEW}
)

POLICY: Dict[str, FrozenSet[Action]] = {
    ROLE_CUSTOMER: _CUSTOMER_ACTIONS,
    ROLE_ADMIN: _CUSTOMER_ACTIONS | {Action.MANAGE_CATALOG, Action.VIEW_ALL_ORDERS},
}


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None
    role: str = ROLE_CUSTOMER


def authorize(user: Optional[CurrentUser], action: Action) -> bool:
    if user is None:
        return False
    return action in POLICY.get(user.role, frozenset())
