"""
Custom permissions for Q.Vote.
"""

from rest_framework import permissions


def is_code_owner(user, code) -> bool:
    return bool(user and user.is_authenticated and code.owner_id == user.id)


class IsCodeOwnerOrReadOnly(permissions.BasePermission):
    """
    Permission class that allows:
    - Read access to all users
    - Write access only to the code owner
    """

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True

        # Require authentication for write operations
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True

        # Only owner can modify
        return is_code_owner(request.user, obj)
