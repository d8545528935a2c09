"""Invoices blueprint - tenant-scoped JSON API."""
from flask import Blueprint, jsonify, request

from invoicing.blueprints.metrics import invoice_events_total
from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission
from invoicing.middleware import current_scope, require_tenant
from invoicing.models import InvoiceStatus
from invoicing.schemas.base import parse_payload
from invoicing.schemas.invoice import InvoiceCreate, InvoiceUpdate, MarkPaidRequest, SendInvoiceRequest
from invoicing.services import invoice_lifecycle, invoice_service, payment_service
from invoicing.services.numbering_service import allocate_invoice_number
from invoicing.utils.request_args import date_arg, enum_arg, page_args, paginated

invoices_bp = Blueprint('invoices', __name__, url_prefix='/api/invoices')


@invoices_bp.route('', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_INVOICES)
def list_invoices():
    """List with ?search=&status=&customer_id=&from=&to=&page=&limit=."""
    page, per_page = page_args()
    invoices, total = invoice_service.list_invoices(
        get_session(), current_scope(),
        search=request.args.get('search', '').strip() or None,
        status=enum_arg('status', InvoiceStatus),
        customer_id=request.args.get('customer_id', type=int),
        date_from=date_arg('from'),
        date_to=date_arg('to'),
        page=page,
        per_page=per_page,
    )
    return jsonify(paginated(
        [invoice.to_dict(include_items=False) for invoice in invoices], total, page, per_page, 'invoices'
    ))


@invoices_bp.route('/generate-number', methods=['GET'])
@require_tenant
@require_permission(Permission.CREATE_INVOICES)
def generate_number():
    """Reserve the next invoice number for the current tenant."""
    number = allocate_invoice_number(get_session(), current_scope())
    return jsonify({'invoice_number': number})


@invoices_bp.route('', methods=['POST'])
@require_tenant
@require_permission(Permission.CREATE_INVOICES)
def create_invoice():
    data = parse_payload(InvoiceCreate)
    invoice = invoice_service.create_invoice(get_session(), current_scope(), data.model_dump())
    invoice_events_total.labels(event='created').inc()
    return jsonify({'invoice': invoice.to_dict()}), 201


@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_INVOICES)
def get_invoice(invoice_id):
    invoice = invoice_lifecycle.get_invoice(get_session(), current_scope(), invoice_id)
    data = invoice.to_dict()
    data['customer'] = invoice.customer.to_dict()
    data['payments'] = [payment.to_dict() for payment in invoice.payments]
    return jsonify({'invoice': data})


@invoices_bp.route('/<int:invoice_id>', methods=['PATCH'])
@require_tenant
@require_permission(Permission.EDIT_INVOICES)
def update_invoice(invoice_id):
    data = parse_payload(InvoiceUpdate)
    invoice = invoice_service.update_invoice(
        get_session(), current_scope(), invoice_id, data.model_dump(exclude_unset=True)
    )
    return jsonify({'invoice': invoice.to_dict()})


@invoices_bp.route('/<int:invoice_id>', methods=['DELETE'])
@require_tenant
@require_permission(Permission.DELETE_INVOICES)
def delete_invoice(invoice_id):
    invoice_service.delete_invoice(get_session(), current_scope(), invoice_id)
    return jsonify({'message': 'Invoice deleted'})


@invoices_bp.route('/<int:invoice_id>/send', methods=['POST'])
@require_tenant
@require_permission(Permission.SEND_INVOICES)
def send_invoice(invoice_id):
    data = parse_payload(SendInvoiceRequest)
    result = invoice_service.send_invoice(get_session(), current_scope(), invoice_id, data.model_dump())
    invoice_events_total.labels(event='sent').inc()
    return jsonify({
        'message': f"Invoice sent via {result['method']}",
        'sent_to': result['sent_to'],
        'invoice': result['invoice'].to_dict(include_items=False),
    })


@invoices_bp.route('/<int:invoice_id>/mark-paid', methods=['POST'])
@require_tenant
@require_permission(Permission.RECORD_PAYMENTS)
def mark_paid(invoice_id):
    data = parse_payload(MarkPaidRequest)
    session = get_session()
    payment = payment_service.record_manual_payment(session, current_scope(), invoice_id, data.model_dump())
    invoice_events_total.labels(event='manual_payment').inc()
    invoice = invoice_lifecycle.get_invoice(session, current_scope(), invoice_id)
    return jsonify({'payment': payment.to_dict(), 'invoice': invoice.to_dict(include_items=False)})


@invoices_bp.route('/<int:invoice_id>/payment-link', methods=['POST'])
@require_tenant
@require_permission(Permission.SEND_INVOICES)
def payment_link(invoice_id):
    payment = payment_service.create_payment_link(get_session(), current_scope(), invoice_id)
    return jsonify({
        'reference': payment.reference,
        'authorization_url': payment.authorization_url,
        'amount': str(payment.amount),
    }), 201
