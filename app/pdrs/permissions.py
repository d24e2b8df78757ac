"""
Object-level permissions for PDRs.
"""

from rest_framework import permissions

from .workflows import UserRole


class IsCEO(permissions.BasePermission):
    """Allows access only to the CEO."""

    message = "Only the CEO can perform this action."

    def has_permission(self, request, view):
        return request.user.role == UserRole.CEO


class IsPDRParticipant(permissions.BasePermission):
    """
    Allows access to the PDR's owner or the CEO.
    Works for PDRs and for objects hanging off a PDR (goals, behaviors).
    """

    def has_object_permission(self, request, view, obj):
        pdr = getattr(obj, "pdr", obj)
        if request.user.role == UserRole.CEO:
            return True
        return pdr.is_owned_by(request.user)
