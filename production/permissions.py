from rest_framework.permissions import BasePermission, SAFE_METHODS
from django.core.cache import cache

from . import conf


class IsProductionStaff(BasePermission):
    """
    Any authenticated user can read production data. Stage commands and
    order creation need one of the APPAREL_ERP_SETTINGS['PRODUCTION_ROLES']
    groups, or superuser.
    """

    def has_permission(self, request, view):
        # Check if user is authenticated
        if not request.user or not request.user.is_authenticated:
            return False

        if request.method in SAFE_METHODS:
            return True

        if request.user.is_superuser:
            return True
        return bool(self._get_user_roles(request.user) & set(conf.get('PRODUCTION_ROLES')))

    def _get_user_roles(self, user):
        """Get user group names with caching"""
        cache_key = f'user_roles_{user.id}'
        user_roles = cache.get(cache_key)

        if user_roles is None:
            user_roles = list(user.groups.values_list('name', flat=True))
            cache.set(cache_key, user_roles, 300)  # Cache for 5 minutes

        return set(user_roles)
