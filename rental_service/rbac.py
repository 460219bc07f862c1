from fastapi import Depends, HTTPException, status

from .models import ROLE_ADMIN
from .security import get_current_user


def has_role(payload: dict, allowed_roles: list[str]) -> bool:
    token_roles = payload.get("roles")
    if not isinstance(token_roles, list) or not token_roles:
        return False

    allowed = {r.lower() for r in allowed_roles}
    roles = {r.lower() for r in token_roles}
    return not roles.isdisjoint(allowed)


def require_role(payload: dict, allowed_roles: list[str]):
    token_roles = payload.get("roles")

    if not isinstance(token_roles, list) or not token_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Roles missing in token",
        )

    if not has_role(payload, allowed_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access forbidden for this role",
        )


def require_admin(user=Depends(get_current_user)):
    require_role(user, [ROLE_ADMIN])
    return user
