"""
Checks if the authenticated user holds a role allowed to settle payments.

Args:
    request: The HTTP request object.
    view: The view being accessed.

Returns:
    bool: True if the user is authenticated and is finance or an L3 approver.
"""

from rest_framework import permissions


class CanProcessBatchPayments(permissions.BasePermission):
    """
    Permission check for finance and L3 approver roles.
    """
    message = 'Only finance or L3 approvers can process batch payments.'

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            request.user.can_process_payments()
        )
