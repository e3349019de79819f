"""
Role guards for endpoint access.

Roles are checked here; participant checks (owning passenger, bound
driver) belong to the services, which own the request being acted on.
Both fail with ERR_PERM_001.
"""

from typing import List
from fastapi import Depends
from edrive.app.models.enums import UserRole
from edrive.app.core.dependencies import get_current_user
from edrive.app.core.exceptions import InsufficientPermissionsError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/requests")
        async def create(current_user: dict = Depends(require_role([UserRole.PASSENGER]))):
            ...

    Raises:
        InsufficientPermissionsError: role missing from the token or not allowed
    """
    allowed = {role.value for role in allowed_roles}

    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        role = current_user.get("role")
        if role not in allowed:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}",
                details={"role": role}
            )
        return current_user

    return role_checker


require_admin = require_role([UserRole.ADMIN])
require_passenger = require_role([UserRole.PASSENGER])
require_driver = require_role([UserRole.DRIVER])
