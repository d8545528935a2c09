"""
Webhooks blueprint for Paystack notifications.

Exempt from CSRF; authenticity comes from the HMAC signature header.
"""
import logging

from flask import Blueprint, current_app, jsonify, request

from invoicing.blueprints.metrics import paystack_webhooks_total
from invoicing.database import get_session
from invoicing.services import payment_service
from invoicing.services.paystack_client import verify_webhook_signature

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')


@webhooks_bp.route('/paystack', methods=['POST'])
def paystack_webhook():
    """
    Handle Paystack events.

    Handled events:
    - charge.success: reconcile the payment against its invoice
    - charge.failed: mark the pending payment as failed

    Anything else is acknowledged with 200 so Paystack stops retrying.
    """
    payload = request.get_data()
    signature = request.headers.get('x-paystack-signature')
    secret = current_app.config.get('PAYSTACK_SECRET_KEY')

    if not secret or not verify_webhook_signature(payload, signature, secret):
        logger.warning("Rejected Paystack webhook with invalid signature")
        paystack_webhooks_total.labels(result='rejected').inc()
        return jsonify({'status': 'error', 'message': 'Invalid signature'}), 401

    event = request.get_json(silent=True)
    if not event:
        return jsonify({'status': 'error', 'message': 'Empty payload'}), 400

    outcome = payment_service.handle_webhook_event(get_session(), event)
    paystack_webhooks_total.labels(result=outcome).inc()
    logger.info(f"Paystack webhook {event.get('event')}: {outcome}")
    return jsonify({'status': 'ok', 'result': outcome}), 200
