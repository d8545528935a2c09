"""
Tax service - tenant-scoped CRUD.

A tenant has at most one default tax. Making a tax the default clears the
flag on every other tax of the tenant in the same transaction.
"""
import logging

from invoicing.exceptions import NotFoundError
from invoicing.models import Tax, AuditAction
from invoicing.services.audit_service import log_scoped_action
from invoicing.tenancy import TenantScope, scoped_query

logger = logging.getLogger(__name__)


def list_taxes(session, scope: TenantScope):
    """Default tax first, then creation order."""
    return scoped_query(session, Tax, scope).order_by(
        Tax.is_default.desc(), Tax.created_at.asc(), Tax.id.asc()
    ).all()


def get_tax(session, scope: TenantScope, tax_id: int) -> Tax:
    tax = scoped_query(session, Tax, scope).filter(Tax.id == tax_id).first()
    if tax is None:
        raise NotFoundError("Tax not found")
    return tax


def get_default_tax(session, scope: TenantScope):
    return scoped_query(session, Tax, scope).filter(Tax.is_default.is_(True)).first()


def _clear_defaults(session, scope: TenantScope, keep_id=None):
    query = scoped_query(session, Tax, scope).filter(Tax.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Tax.id != keep_id)
    query.update({Tax.is_default: False}, synchronize_session='fetch')


def create_tax(session, scope: TenantScope, data: dict) -> Tax:
    if data.get('is_default'):
        _clear_defaults(session, scope)

    tax = Tax(tenant_id=scope.tenant_id, **data)
    session.add(tax)
    session.flush()
    log_scoped_action(session, scope, AuditAction.TAX_CREATED, 'TAX', tax.id,
                      {'name': tax.name, 'rate': tax.rate, 'is_default': tax.is_default})
    session.commit()
    return tax


def update_tax(session, scope: TenantScope, tax_id: int, data: dict) -> Tax:
    tax = get_tax(session, scope, tax_id)
    if data.get('is_default'):
        _clear_defaults(session, scope, keep_id=tax.id)

    for key, value in data.items():
        setattr(tax, key, value)
    log_scoped_action(session, scope, AuditAction.TAX_UPDATED, 'TAX', tax.id, data)
    session.commit()
    return tax


def delete_tax(session, scope: TenantScope, tax_id: int):
    tax = get_tax(session, scope, tax_id)
    session.delete(tax)
    log_scoped_action(session, scope, AuditAction.TAX_DELETED, 'TAX', tax_id, {'name': tax.name})
    session.commit()
