# calculator/permissions.py

from rest_framework import permissions


class IsMaster(permissions.BasePermission):
    """Allow access to any authenticated salon staff (masters and admins)."""
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)


class IsAdminRole(permissions.BasePermission):
    """Allow access only to authenticated users with the role 'admin' (or staff)."""
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_admin_role)


class IsOwnerOrAdmin(permissions.BasePermission):
    """
    Object-level permission: masters only touch their own sales/offers.
    Assumes the model instance has a `master` attribute.
    """
    def has_object_permission(self, request, view, obj):
        if request.user.is_admin_role:
            return True
        return obj.master_id == request.user.id
