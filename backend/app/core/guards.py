"""
Security guards for role-based access control.

Staff roles (owner, admin, dispatcher) see the management views; drivers
get the field views and only their own incident reports.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole, STAFF_ROLES
from backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/maintenance/records")
        async def list_records(current_user: dict = Depends(require_role(STAFF_ROLES))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            user_role = UserRole(current_user.get("role"))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


require_staff = require_role(STAFF_ROLES)
require_any_role = require_role(STAFF_ROLES + [UserRole.DRIVER])


def is_staff(current_user: dict) -> bool:
    return current_user.get("role") in {r.value for r in STAFF_ROLES}


class DriverScopeGuard:
    """
    Restricts driver-visible resources to the ones the driver created.

    Usage:
        driver_scope = DriverScopeGuard()

        incident = await get_incident(db, incident_id)
        driver_scope.enforce(incident.driver_id, current_user, "incident")
    """

    def enforce(self, resource_driver_id: str, current_user: dict, resource_name: str = "resource"):
        if is_staff(current_user):
            return
        if resource_driver_id != current_user.get("user_id"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_driver_id(self, current_user: dict):
        """Driver id to filter list queries by, or None for staff."""
        if is_staff(current_user):
            return None
        return current_user.get("user_id")
