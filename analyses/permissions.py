"""
Role based permission classes.
"""
from rest_framework.permissions import BasePermission

STAFF_ROLES = {"agent", "doctor", "admin", "super"}
ADMIN_ROLES = {"admin", "super"}


class IsStaffRole(BasePermission):
    """Any clinic staff member."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES)


class IsAdminRole(BasePermission):
    """Allow access only to users with an administrative role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in ADMIN_ROLES)


class CanVerifyPrescriptions(BasePermission):
    """Service agents and administrators record prescriptions; doctors only read them."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in {"agent", "admin", "super"})
