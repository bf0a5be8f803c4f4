import logging
from enum import Enum

from fastapi import Depends

from .errors import Forbidden
from .security import get_current_user

logger = logging.getLogger(__name__)


class Role(str, Enum):
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    VENDOR = "VENDOR"


# admins run the manager console too
MANAGER_ROLES = (Role.MANAGER, Role.ADMIN)
VENDOR_ROLES = (Role.VENDOR,)


def roles_of(claims: dict) -> set[str]:
    roles = claims.get("roles")
    if not isinstance(roles, list):
        return set()
    return {str(r).upper() for r in roles}


def require_role(claims: dict, allowed_roles) -> None:
    held = roles_of(claims)
    if not held:
        raise Forbidden("Roles missing in token")

    needed = {Role(r).value for r in allowed_roles}
    if held.isdisjoint(needed):
        logger.warning(f"User {claims.get('sub')} with roles {sorted(held)} denied, needs one of {sorted(needed)}")
        raise Forbidden("Access forbidden for this role")


def roles_required(allowed_roles):
    """Dependency returning the caller's claims once they hold one of allowed_roles."""

    def dependency(claims: dict = Depends(get_current_user)) -> dict:
        require_role(claims, allowed_roles)
        return claims

    return dependency


manager_user = roles_required(MANAGER_ROLES)
vendor_user = roles_required(VENDOR_ROLES)
