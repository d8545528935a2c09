"""
Role-based access control.

Roles are a closed enum and capabilities are a single matrix checked by
``require_permission``; routes never compare role strings themselves.
"""

import enum
from functools import wraps

from flask import g

from invoicing.exceptions import AccessDenied, Unauthorized
from invoicing.models import UserRole


class Permission(enum.Enum):
    VIEW_INVOICES = "view_invoices"
    CREATE_INVOICES = "create_invoices"
    EDIT_INVOICES = "edit_invoices"
    DELETE_INVOICES = "delete_invoices"
    SEND_INVOICES = "send_invoices"
    RECORD_PAYMENTS = "record_payments"
    VIEW_CUSTOMERS = "view_customers"
    MANAGE_CUSTOMERS = "manage_customers"
    VIEW_TAXES = "view_taxes"
    MANAGE_TAXES = "manage_taxes"
    VIEW_SETTINGS = "view_settings"
    MANAGE_SETTINGS = "manage_settings"
    ADMIN_TENANTS = "admin_tenants"
    ADMIN_METRICS = "admin_metrics"


_TENANT_PERMISSIONS = frozenset(
    p for p in Permission if p not in (Permission.ADMIN_TENANTS, Permission.ADMIN_METRICS)
)

ROLE_CAPABILITIES = {
    UserRole.SUPER_ADMIN: frozenset(Permission),
    UserRole.OWNER: _TENANT_PERMISSIONS,
    UserRole.ADMIN: _TENANT_PERMISSIONS - {Permission.MANAGE_SETTINGS},
    UserRole.STAFF: frozenset({
        Permission.VIEW_INVOICES,
        Permission.CREATE_INVOICES,
        Permission.SEND_INVOICES,
        Permission.VIEW_CUSTOMERS,
        Permission.MANAGE_CUSTOMERS,
        Permission.VIEW_TAXES,
        Permission.VIEW_SETTINGS,
    }),
}


def has_permission(role, permission):
    """True if ``role`` carries ``permission``. Unknown roles carry nothing."""
    return permission in ROLE_CAPABILITIES.get(role, frozenset())


def require_permission(permission):
    """
    Decorator to check for a capability of the current user's role.

    Usage:
        @require_permission(Permission.MANAGE_TAXES)

    Only checks the role; stack it under ``require_tenant`` for tenant routes.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('user')
            if user is None:
                raise Unauthorized()
            if not has_permission(user.role, permission):
                raise AccessDenied()
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_super_admin(f):
    """Shortcut for platform administration routes."""
    return require_permission(Permission.ADMIN_TENANTS)(f)
