from rest_framework.permissions import BasePermission


class IsPortfolioAdmin(BasePermission):
    """Allow access only to users holding the admin role (or Django staff)."""

    def has_permission(self, request, view):
        u = getattr(request, "user", None)
        if not (u and getattr(u, "is_authenticated", False)):
            return False
        return bool(getattr(u, "is_privileged", False))
