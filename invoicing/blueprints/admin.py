"""
Platform administration API.

Only SUPER_ADMIN users reach these routes; tenant members get 403.
"""
from flask import Blueprint, g, jsonify, request

from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission, require_super_admin
from invoicing.models import TenantStatus
from invoicing.schemas.base import parse_payload
from invoicing.schemas.settings import TenantStatusUpdate
from invoicing.services import admin_service
from invoicing.services.audit_service import get_audit_logs
from invoicing.tenancy import system_scope
from invoicing.utils.request_args import enum_arg, page_args, paginated

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.route('/tenants', methods=['GET'])
@require_super_admin
def list_tenants():
    page, per_page = page_args()
    tenants, total = admin_service.list_tenants(
        get_session(),
        status=enum_arg('status', TenantStatus),
        search=request.args.get('search', '').strip() or None,
        page=page, per_page=per_page,
    )
    return jsonify(paginated([t.to_dict() for t in tenants], total, page, per_page, 'tenants'))


@admin_bp.route('/tenants/<int:tenant_id>', methods=['GET'])
@require_super_admin
def get_tenant(tenant_id):
    return jsonify({'tenant': admin_service.tenant_detail(get_session(), tenant_id)})


@admin_bp.route('/tenants/<int:tenant_id>', methods=['PATCH'])
@require_super_admin
def update_tenant(tenant_id):
    data = parse_payload(TenantStatusUpdate)
    tenant = admin_service.update_tenant_status(
        get_session(), g.user, tenant_id, TenantStatus(data.status), data.reason
    )
    return jsonify({'tenant': tenant.to_dict()})


@admin_bp.route('/tenants/<int:tenant_id>/audit-logs', methods=['GET'])
@require_super_admin
def tenant_audit_logs(tenant_id):
    admin_service.get_tenant(get_session(), tenant_id)
    page, per_page = page_args()
    logs = get_audit_logs(
        get_session(), system_scope(tenant_id), limit=per_page, offset=(page - 1) * per_page,
        entity_type_filter=request.args.get('entity_type') or None,
    )
    return jsonify({'audit_logs': [log.to_dict() for log in logs], 'page': page, 'limit': per_page})


@admin_bp.route('/metrics', methods=['GET'])
@require_permission(Permission.ADMIN_METRICS)
def metrics():
    return jsonify({'metrics': admin_service.platform_metrics(get_session())})
