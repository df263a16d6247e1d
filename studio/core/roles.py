"""
Application roles.

Roles are plain Django groups named after the role value, so a user can hold
several roles at once and the admin site can manage them directly.
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.permissions import BasePermission

ADMIN = 'admin'
INTERNAL = 'internal'
FREELANCER = 'freelancer'
CLIENT = 'client'

APP_ROLES = [ADMIN, INTERNAL, FREELANCER, CLIENT]

ROLE_DESCRIPTIONS = {
    ADMIN: 'Full access including user and role administration',
    INTERNAL: 'Studio staff - manages libraries, projects, scrapes and jobs',
    FREELANCER: 'External contributor - claims and submits jobs',
    CLIENT: 'Brand contact - read-only access to deliverables',
}


def get_user_roles(user):
    """Return the role names a user holds, in APP_ROLES order"""
    if not user or not user.is_authenticated:
        return []
    names = set(user.groups.filter(name__in=APP_ROLES).values_list('name', flat=True))
    return [role for role in APP_ROLES if role in names]


def has_role(user, *roles):
    if not user or not user.is_authenticated:
        return False
    return user.groups.filter(name__in=roles).exists()


def is_admin(user):
    """Admins are members of the admin group; superusers always count"""
    if not user or not user.is_authenticated:
        return False
    return user.is_superuser or has_role(user, ADMIN)


def is_staff_member(user):
    """Admin or internal staff"""
    return is_admin(user) or has_role(user, INTERNAL)


def admin_exists():
    User = get_user_model()
    return (
        Group.objects.filter(name=ADMIN, user__isnull=False).exists()
        or User.objects.filter(is_superuser=True, is_active=True).exists()
    )


def get_role_group(role):
    group, _ = Group.objects.get_or_create(name=role)
    return group


class IsAppAdmin(BasePermission):
    message = 'Only administrators can perform this action'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsStaffMember(BasePermission):
    message = 'Only internal staff can perform this action'

    def has_permission(self, request, view):
        return is_staff_member(request.user)
