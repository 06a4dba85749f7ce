# apps/accounts/permissions.py
from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsFinanceStaffOrReadOnly(BasePermission):
    """
    Any authenticated user may read fee data.
    Writes need the admin or accountant role.
    """
    message = 'Finance staff access required'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return getattr(user, 'can_manage_fees', False)
