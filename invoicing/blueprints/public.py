"""Public (unauthenticated) invoice endpoints used by customer-facing links."""
from flask import Blueprint, jsonify, request

from invoicing.database import get_session
from invoicing.exceptions import ValidationError
from invoicing.services import invoice_service, payment_service

public_bp = Blueprint('public', __name__, url_prefix='/api/public')


@public_bp.route('/invoices/<int:invoice_id>', methods=['GET'])
def view_invoice(invoice_id):
    """
    Full invoice for the customer. Reading it is what marks the invoice
    as VIEWED, so this is intentionally a GET with a side effect.
    """
    return jsonify({'invoice': invoice_service.view_public_invoice(get_session(), invoice_id)})


@public_bp.route('/invoices/<int:invoice_id>/verify-payment', methods=['GET'])
def verify_payment(invoice_id):
    reference = request.args.get('reference', '').strip()
    if not reference:
        raise ValidationError([{'field': 'reference', 'message': 'reference is required'}])

    payment = payment_service.verify_payment(get_session(), invoice_id, reference)
    return jsonify({'payment': payment.to_dict()})
