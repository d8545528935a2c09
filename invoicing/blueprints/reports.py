"""Reports blueprint - tenant-scoped JSON API."""
from flask import Blueprint, jsonify, request

from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission
from invoicing.middleware import current_scope, require_tenant
from invoicing.models import InvoiceStatus
from invoicing.services import report_service
from invoicing.utils.request_args import date_arg, enum_arg, page_args, paginated

reports_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


@reports_bp.route('/transactions', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_INVOICES)
def transactions():
    """Invoices and payments with ?type=&status=&customer_id=&from=&to=&page=&limit=."""
    page, per_page = page_args()
    entries, total, summary = report_service.transaction_history(
        get_session(), current_scope(),
        txn_type=request.args.get('type', '').strip().lower() or None,
        status=enum_arg('status', InvoiceStatus),
        customer_id=request.args.get('customer_id', type=int),
        start=date_arg('from'),
        end=date_arg('to'),
        page=page,
        per_page=per_page,
    )
    payload = paginated(entries, total, page, per_page, 'transactions')
    payload['summary'] = summary
    return jsonify(payload)
