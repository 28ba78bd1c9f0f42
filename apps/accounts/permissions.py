from rest_framework import permissions

from apps.accounts.models import Privilege
from apps.accounts.services import has_privilege, is_allowed_edit_by


class CanManageUsers(permissions.BasePermission):
    """
    Permission: User must hold the manage_user privilege (admins always do).
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return has_privilege(user=user, privilege=Privilege.MANAGE_USER)


class CanEditUser(permissions.BasePermission):
    """
    Permission: User must be the account owner, an admin, or a user manager.
    """

    def has_object_permission(self, request, view, obj):
        # obj is a User instance
        return is_allowed_edit_by(target=obj, user=request.user)
