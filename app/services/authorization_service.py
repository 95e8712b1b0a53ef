"""Order access checks.

Pure functions over the actor and the order row; no database access.
"""

from dataclasses import dataclass

from app.db.models import Order
from app.schemas.auth import ActorSession
from app.services.order_errors import Forbidden


@dataclass(frozen=True)
class AccessDecision:
    is_owner: bool
    is_admin: bool

    @property
    def allowed(self) -> bool:
        return self.is_owner or self.is_admin


def authorize(actor: ActorSession, order: Order) -> AccessDecision:
    """Owner = order's customer; admin capability comes from the identity directory."""
    return AccessDecision(
        is_owner=order.customer_id is not None and order.customer_id == actor.user_id,
        is_admin=actor.is_admin,
    )


def ensure_can_access(actor: ActorSession, order: Order) -> AccessDecision:
    decision = authorize(actor, order)
    if not decision.allowed:
        raise Forbidden("You do not have access to this order.")
    return decision


def ensure_admin(actor: ActorSession) -> None:
    if not actor.is_admin:
        raise Forbidden("Admin access required.")
