"""
Platform administration: tenant oversight and aggregate metrics.
"""
import logging

from flask import current_app
from sqlalchemy import func

from invoicing.exceptions import NotFoundError
from invoicing.models import AuditAction, Customer, Invoice, InvoiceStatus, Tenant, TenantStatus, User
from invoicing.services.audit_service import log_action
from invoicing.services.cache_service import PLATFORM, get_cache

logger = logging.getLogger(__name__)

METRICS_MODULE = 'admin_metrics'


def list_tenants(session, status: TenantStatus = None, search: str = None, page: int = 1, per_page: int = 20):
    query = session.query(Tenant)
    if status:
        query = query.filter(Tenant.status == status)
    if search:
        term = f"%{search.lower()}%"
        query = query.filter(func.lower(Tenant.company_name).like(term))

    total = query.count()
    tenants = query.order_by(Tenant.created_at.desc(), Tenant.id.desc()) \
        .offset((page - 1) * per_page).limit(per_page).all()
    return tenants, total


def get_tenant(session, tenant_id: int) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == tenant_id).first()
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def tenant_detail(session, tenant_id: int) -> dict:
    tenant = get_tenant(session, tenant_id)
    data = tenant.to_dict()
    data['counts'] = {
        'users': session.query(func.count(User.id)).filter(User.tenant_id == tenant.id).scalar(),
        'customers': session.query(func.count(Customer.id)).filter(Customer.tenant_id == tenant.id).scalar(),
        'invoices': session.query(func.count(Invoice.id)).filter(Invoice.tenant_id == tenant.id).scalar(),
    }
    return data


def update_tenant_status(session, actor: User, tenant_id: int, status: TenantStatus, reason: str = None) -> Tenant:
    tenant = get_tenant(session, tenant_id)
    previous = tenant.status
    if previous == status:
        return tenant

    tenant.status = status
    log_action(
        session, AuditAction.TENANT_STATUS_CHANGED,
        actor_id=actor.id, tenant_id=tenant.id,
        entity_type='TENANT', entity_id=tenant.id,
        details={'from': previous.value, 'to': status.value, 'reason': reason}
    )
    session.commit()
    get_cache().invalidate(PLATFORM, METRICS_MODULE)
    logger.info(f"Tenant {tenant.id} status {previous.value} -> {status.value} by admin {actor.id}")
    return tenant


def _compute_metrics(session) -> dict:
    tenants_by_status = dict(
        session.query(Tenant.status, func.count(Tenant.id)).group_by(Tenant.status).all()
    )
    invoices_by_status = dict(
        session.query(Invoice.status, func.count(Invoice.id)).group_by(Invoice.status).all()
    )
    collected = session.query(func.coalesce(func.sum(Invoice.amount_paid), 0)).scalar()

    return {
        'tenants': {s.value: tenants_by_status.get(s, 0) for s in TenantStatus},
        'users': session.query(func.count(User.id)).scalar(),
        'invoices': {s.value: invoices_by_status.get(s, 0) for s in InvoiceStatus},
        'amount_collected': str(collected),
    }


def platform_metrics(session) -> dict:
    """Platform-wide counters, cached in Redis when available."""
    return get_cache().memoize(
        PLATFORM, METRICS_MODULE, 'summary',
        lambda: _compute_metrics(session),
        ttl=current_app.config.get('CACHE_ADMIN_METRICS_TTL', 300)
    )
