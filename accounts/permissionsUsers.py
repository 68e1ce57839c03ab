# permissions.py
from rest_framework.permissions import BasePermission


class IsSuperAdminOrAdmin(BasePermission):
    message = "Admin privileges required"

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin)
