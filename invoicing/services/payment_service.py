"""
Invoice payments: Paystack payment links, gateway reconciliation and
manually recorded payments.

Every path that changes ``amount_paid`` locks the invoice row and goes
through ``invoice_lifecycle.apply_payment``.
"""
import json
import logging
from datetime import datetime

import requests

from invoicing.exceptions import BusinessLogicError, NotFoundError, OperationFailed, ValidationError
from invoicing.models import InvoiceStatus, Payment, PaymentStatus, AuditAction
from invoicing.services import invoice_lifecycle as lifecycle
from invoicing.services.audit_service import log_action, log_scoped_action
from invoicing.services.invoice_service import public_invoice_link
from invoicing.services.paystack_client import PaystackClient, from_kobo, generate_reference
from invoicing.tenancy import TenantScope, system_scope

logger = logging.getLogger(__name__)


def _paid_action(status: InvoiceStatus) -> AuditAction:
    return AuditAction.INVOICE_PAID if status == InvoiceStatus.PAID else AuditAction.INVOICE_PARTIALLY_PAID


def create_payment_link(session, scope: TenantScope, invoice_id: int, client: PaystackClient = None) -> Payment:
    """
    Start a Paystack checkout for the invoice's balance due.

    Raises:
        InvalidTransition: invoice already paid
        ValidationError: customer has no email (Paystack requires one)
        OperationFailed: Paystack unreachable or rejected the request
    """
    invoice = lifecycle.get_invoice(session, scope, invoice_id)
    lifecycle.ensure_editable(invoice)

    if not invoice.customer.email:
        raise ValidationError([{'field': 'email', 'message': 'Customer email is required for online payment'}])

    amount = lifecycle.to_money(invoice.balance_due)
    reference = generate_reference()
    metadata = {'invoice_id': invoice.id, 'tenant_id': invoice.tenant_id, 'invoice_number': invoice.invoice_number}

    try:
        client = client or PaystackClient()
        data = client.initialize_transaction(
            email=invoice.customer.email,
            amount=amount,
            reference=reference,
            callback_url=public_invoice_link(invoice.id),
            metadata=metadata,
            currency=invoice.currency,
        )
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Paystack initialization failed for invoice {invoice.id}: {e}")
        raise OperationFailed("Payment provider is unavailable. Please try again.", status_code=502) from e

    payment = Payment(
        tenant_id=scope.tenant_id,
        invoice_id=invoice.id,
        reference=data.get('reference') or reference,
        amount=amount,
        currency=invoice.currency,
        method='paystack',
        status=PaymentStatus.PENDING,
        authorization_url=data.get('authorization_url'),
        details=json.dumps(metadata),
    )
    session.add(payment)
    session.flush()
    log_scoped_action(session, scope, AuditAction.PAYMENT_LINK_GENERATED, 'INVOICE', invoice.id, {
        'reference': payment.reference,
        'amount': amount,
    })
    session.commit()
    return payment


def _lock_payment(session, reference: str):
    return session.query(Payment).filter(Payment.reference == reference).with_for_update().first()


def reconcile_successful_charge(session, reference: str, amount_kobo, gateway_status: str = 'success', paid_at=None) -> Payment:
    """
    Apply a confirmed gateway charge to its invoice. Idempotent per reference:
    a payment already marked SUCCESS is returned unchanged.

    Raises:
        NotFoundError: unknown reference
    """
    payment = _lock_payment(session, reference)
    if payment is None:
        raise NotFoundError("Payment not found")

    if payment.status == PaymentStatus.SUCCESS:
        logger.info(f"Payment {reference} already reconciled")
        session.rollback()
        return payment

    scope = system_scope(payment.tenant_id)
    invoice = lifecycle.get_invoice(session, scope, payment.invoice_id, for_update=True)
    amount = from_kobo(amount_kobo) if amount_kobo is not None else lifecycle.to_money(payment.amount)

    if invoice.status == InvoiceStatus.PAID:
        # Paid some other way in the meantime; keep the record, do not double count
        logger.warning(f"Charge {reference} arrived for already paid invoice {invoice.id}")
        payment.status = PaymentStatus.SUCCESS
        payment.gateway_status = gateway_status
        payment.notes = 'Invoice was already paid when the charge was confirmed'
        payment.paid_at = paid_at or datetime.utcnow()
        session.commit()
        return payment

    # The gateway may confirm more than the current balance; cap at the balance
    applied = min(lifecycle.to_money(amount), lifecycle.to_money(invoice.balance_due))
    new_status = lifecycle.apply_payment(invoice, applied)

    payment.status = PaymentStatus.SUCCESS
    payment.gateway_status = gateway_status
    payment.amount = amount
    payment.paid_at = paid_at or datetime.utcnow()

    log_action(
        session, _paid_action(new_status),
        actor_id=None, tenant_id=invoice.tenant_id,
        entity_type='INVOICE', entity_id=invoice.id,
        details={'reference': reference, 'amount': amount, 'amount_paid': invoice.amount_paid}
    )
    session.commit()
    logger.info(f"Payment {reference} applied to invoice {invoice.id}: {new_status.value}")
    return payment


def mark_payment_failed(session, reference: str, gateway_status: str = 'failed'):
    payment = _lock_payment(session, reference)
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        session.rollback()
        return payment

    payment.status = PaymentStatus.FAILED
    payment.gateway_status = gateway_status
    log_action(
        session, AuditAction.PAYMENT_FAILED,
        actor_id=None, tenant_id=payment.tenant_id,
        entity_type='INVOICE', entity_id=payment.invoice_id,
        details={'reference': reference, 'gateway_status': gateway_status}
    )
    session.commit()
    return payment


def verify_payment(session, invoice_id: int, reference: str, client: PaystackClient = None) -> Payment:
    """
    Ask Paystack about ``reference`` and reconcile (public callback flow).

    Raises:
        NotFoundError: reference does not belong to the invoice
        OperationFailed: Paystack unreachable
    """
    payment = session.query(Payment).filter(
        Payment.reference == reference,
        Payment.invoice_id == invoice_id
    ).first()
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status != PaymentStatus.PENDING:
        return payment

    try:
        client = client or PaystackClient()
        data = client.verify_transaction(reference)
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Paystack verification failed for {reference}: {e}")
        raise OperationFailed("Payment provider is unavailable. Please try again.", status_code=502) from e

    gateway_status = data.get('status')
    if gateway_status == 'success':
        return reconcile_successful_charge(session, reference, data.get('amount'), gateway_status)
    if gateway_status in ('failed', 'abandoned', 'reversed'):
        return mark_payment_failed(session, reference, gateway_status)
    return payment


def handle_webhook_event(session, event: dict) -> str:
    """
    Dispatch a verified Paystack webhook payload.

    Returns a short outcome label for the response body.
    """
    event_type = event.get('event')
    data = event.get('data') or {}
    reference = data.get('reference')

    if event_type not in ('charge.success', 'charge.failed'):
        logger.info(f"Ignoring Paystack event {event_type}")
        return 'ignored'
    if not reference:
        logger.warning(f"Paystack event {event_type} without reference")
        return 'ignored'

    try:
        if event_type == 'charge.success':
            reconcile_successful_charge(session, reference, data.get('amount'), data.get('status') or 'success')
        else:
            mark_payment_failed(session, reference, data.get('status') or 'failed')
    except NotFoundError:
        logger.warning(f"Paystack event {event_type} for unknown reference {reference}")
        return 'unknown_reference'
    return 'processed'


def record_manual_payment(session, scope: TenantScope, invoice_id: int, data: dict) -> Payment:
    """
    Record an offline payment (cash, transfer, ...). ``amount`` defaults to
    the full balance due.

    Raises:
        InvalidTransition: invoice already paid
        ValidationError: amount not positive or above balance due
    """
    invoice = lifecycle.get_invoice(session, scope, invoice_id, for_update=True)
    if invoice.status == InvoiceStatus.PAID:
        raise BusinessLogicError("Invoice is already paid", status_code=409)

    amount = data.get('amount')
    amount = lifecycle.to_money(amount if amount is not None else invoice.balance_due)
    paid_at = data.get('paid_at') or datetime.utcnow()
    if paid_at.tzinfo is not None:
        paid_at = paid_at.replace(tzinfo=None)

    reference = data.get('reference') or f"MANUAL-{generate_reference()}"
    if session.query(Payment.id).filter(Payment.reference == reference).first() is not None:
        raise ValidationError([{'field': 'reference', 'message': 'Payment reference already used'}])

    new_status = lifecycle.apply_payment(invoice, amount, now=paid_at)

    payment = Payment(
        tenant_id=scope.tenant_id,
        invoice_id=invoice.id,
        reference=reference,
        amount=amount,
        currency=invoice.currency,
        method=data.get('payment_method') or 'manual',
        status=PaymentStatus.SUCCESS,
        notes=data.get('notes'),
        paid_at=paid_at,
    )
    session.add(payment)
    session.flush()

    log_scoped_action(session, scope, AuditAction.INVOICE_MARKED_PAID, 'INVOICE', invoice.id, {
        'amount': amount,
        'payment_method': payment.method,
        'reference': payment.reference,
        'status': new_status.value,
    })
    session.commit()
    return payment
