"""Request-scoped dependencies: who is calling.

Identity is established upstream (an auth proxy or API gateway) and passed
in as headers. Endpoints that act on orders or the ledger require it.
"""

from fastapi import Header, HTTPException

from marketplace.shared.access import Caller, Role

_TRUTHY = {"1", "true", "yes", "on"}


def get_caller(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=""),
    x_user_verified: str = Header(default=""),
) -> Caller:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="X-User-Id and X-User-Role headers are required")
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role {x_user_role!r}") from None
    return Caller(
        user_id=x_user_id.strip(),
        role=role,
        is_verified=x_user_verified.strip().lower() in _TRUTHY,
    )
