"""Middleware for authentication and tenant context."""
from functools import wraps
from flask import session, g, current_app
from invoicing.database import get_session
from invoicing.exceptions import AccessDenied, Unauthorized
from invoicing.models import User, Tenant
from invoicing.tenancy import issue_scope


def load_user_and_tenant():
    """
    Load current user, tenant and scope into g (Flask's per-request global).

    Called before each request. ``g.scope`` is only set when the user's
    tenant is ACTIVE; ``g.scope_error`` keeps the reason it was withheld so
    ``require_tenant`` can report it.
    """
    g.user = None
    g.tenant = None
    g.scope = None
    g.scope_error = None

    user_id = session.get('user_id')
    if not user_id:
        return

    db_session = get_session()
    user = db_session.query(User).filter_by(id=user_id, active=True).first()
    if user is None:
        # Stale cookie (user deleted or deactivated)
        session.pop('user_id', None)
        return

    g.user = user
    if user.tenant_id:
        g.tenant = db_session.query(Tenant).filter_by(id=user.tenant_id).first()

    try:
        g.scope = issue_scope(user, g.tenant)
    except AccessDenied as e:
        g.scope_error = e
        if g.tenant is not None:
            current_app.logger.info(f"Scope withheld for user {user.id}: {e.message}")


def require_login(f):
    """Decorator: Require user to be logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise Unauthorized()
        return f(*args, **kwargs)
    return decorated_function


def require_tenant(f):
    """
    Decorator: Require an ACTIVE tenant for the current user.

    Implies ``require_login``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise Unauthorized()
        if g.get('scope') is None:
            raise g.get('scope_error') or AccessDenied()
        return f(*args, **kwargs)
    return decorated_function


def current_scope():
    """Scope issued for this request. Only valid under ``require_tenant``."""
    scope = g.get('scope')
    if scope is None:
        raise AccessDenied()
    return scope
