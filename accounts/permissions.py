from rest_framework import permissions

# Role checks used across the API


class IsAdmin(permissions.BasePermission):
    """Allows access only to users with the admin role (or superusers)."""
    message = "Admin access required."

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.is_admin
