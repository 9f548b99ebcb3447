from rest_framework import permissions


class IsCompanyAdmin(permissions.BasePermission):
    """
    Permission: User must be company admin or owner.
    """

    def has_object_permission(self, request, view, obj):
        # obj is a Company instance
        return obj.is_admin(request.user)


class IsCompanyMember(permissions.BasePermission):
    """
    Permission: User must be a member of the company.
    """

    def has_object_permission(self, request, view, obj):
        # obj is a Company instance
        return obj.has_member(request.user)
