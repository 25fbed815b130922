"""Role-based access decisions for order and ledger operations.

authorize() is a pure function: it inspects the caller and the resource
ownership it is given and returns an AccessDecision. ensure_allowed() turns
a denial into an AccessDenied error at the entry points.

A caller of None represents the system itself (webhook processing,
maintenance jobs) and is always allowed.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.errors import AccessDenied


class Role(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Action(Enum):
    PLACE_ORDER = "place_order"
    VIEW_ORDER = "view_order"
    CREATE_PAYMENT_INTENT = "create_payment_intent"
    CONFIRM_ORDER = "confirm_order"
    CANCEL_ORDER = "cancel_order"
    FULFIL_ORDER = "fulfil_order"
    REFUND_ORDER = "refund_order"
    VIEW_FINANCIALS = "view_financials"
    MANAGE_PAYOUTS = "manage_payouts"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: Role
    is_verified: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


def authorize(
    caller: Caller | None,
    action: Action,
    *,
    buyer_id: str | None = None,
    seller_ids=(),
    seller_id: str | None = None,
) -> AccessDecision:
    """Decide whether caller may perform action on the described resource.

    Args:
        buyer_id: Owner of the order being acted upon, if any.
        seller_ids: Sellers with at least one line in the order.
        seller_id: Seller whose ledger is being read or paid out.
    """
    if caller is None or caller.is_admin:
        return AccessDecision.allow()

    sellers = {str(s) for s in seller_ids}
    is_owner = buyer_id is not None and str(caller.user_id) == str(buyer_id)
    is_involved_seller = caller.role == Role.SELLER and str(caller.user_id) in sellers

    if action == Action.PLACE_ORDER:
        if caller.role != Role.BUYER:
            return AccessDecision.deny("Only buyers can place orders")
        if buyer_id is not None and not is_owner:
            return AccessDecision.deny("Buyers can only place orders for themselves")
        return AccessDecision.allow()

    if action == Action.CREATE_PAYMENT_INTENT:
        if not is_owner:
            return AccessDecision.deny("Only the buyer who placed the order can pay for it")
        return AccessDecision.allow()

    if action == Action.VIEW_ORDER:
        if is_owner or is_involved_seller:
            return AccessDecision.allow()
        return AccessDecision.deny("Order belongs to another buyer")

    if action == Action.CANCEL_ORDER:
        if is_owner or is_involved_seller:
            return AccessDecision.allow()
        return AccessDecision.deny("Only the buyer or a seller on the order can cancel it")

    if action == Action.FULFIL_ORDER:
        if not is_involved_seller:
            return AccessDecision.deny("Only a seller on the order can update fulfilment")
        if not caller.is_verified:
            return AccessDecision.deny("Seller account is not verified")
        return AccessDecision.allow()

    if action == Action.VIEW_FINANCIALS:
        if caller.role == Role.SELLER and seller_id is not None and str(caller.user_id) == str(seller_id):
            return AccessDecision.allow()
        return AccessDecision.deny("Sellers can only view their own financials")

    # CONFIRM_ORDER, REFUND_ORDER and MANAGE_PAYOUTS are administrative
    return AccessDecision.deny(f"{action.value} requires an administrator")


def ensure_allowed(decision: AccessDecision) -> None:
    if not decision.allowed:
        raise AccessDenied(decision.reason)
