"""
Unit tests for Paystack helpers and payment reconciliation.
"""

import hashlib
import hmac
import re
from decimal import Decimal

import pytest
import requests

from invoicing.exceptions import BusinessLogicError, InvalidTransition, OperationFailed, ValidationError
from invoicing.models import AuditAction, AuditLog, InvoiceStatus, Payment, PaymentStatus
from invoicing.services import payment_service
from invoicing.services.paystack_client import (
    PaystackClient, from_kobo, generate_reference, to_kobo, verify_webhook_signature,
)


class FakePaystack:
    """Stands in for PaystackClient; records calls."""

    def __init__(self, verify_data=None, fail=False):
        self.verify_data = verify_data or {}
        self.fail = fail
        self.initialized = []

    def initialize_transaction(self, **kwargs):
        if self.fail:
            raise requests.ConnectionError('paystack down')
        self.initialized.append(kwargs)
        return {
            'authorization_url': f"https://checkout.paystack.com/{kwargs['reference']}",
            'reference': kwargs['reference'],
        }

    def verify_transaction(self, reference):
        if self.fail:
            raise requests.Timeout('paystack slow')
        return self.verify_data


class TestPaystackHelpers:

    def test_kobo_conversion(self):
        assert to_kobo(Decimal('1075.50')) == 107550
        assert from_kobo(107550) == Decimal('1075.50')

    def test_reference_format(self):
        assert re.match(r'^INV-\d{13}-\d{4}$', generate_reference())

    def test_signature_verification(self):
        body = b'{"event":"charge.success"}'
        signature = hmac.new(b'sk_test_secret', body, hashlib.sha512).hexdigest()

        assert verify_webhook_signature(body, signature, 'sk_test_secret') is True
        assert verify_webhook_signature(body + b' ', signature, 'sk_test_secret') is False
        assert verify_webhook_signature(body, None, 'sk_test_secret') is False
        assert verify_webhook_signature(body, signature, '') is False

    def test_client_requires_secret(self, app):
        app.config['PAYSTACK_SECRET_KEY'] = ''
        try:
            with pytest.raises(ValueError):
                PaystackClient()
        finally:
            app.config['PAYSTACK_SECRET_KEY'] = 'sk_test_secret'


@pytest.fixture
def pending_payment(session, scope1, invoice1):
    fake = FakePaystack()
    return payment_service.create_payment_link(session, scope1, invoice1.id, client=fake)


class TestPaymentLink:

    def test_creates_pending_payment_for_balance(self, session, scope1, invoice1):
        fake = FakePaystack()
        payment = payment_service.create_payment_link(session, scope1, invoice1.id, client=fake)

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal('1000.00')
        assert payment.authorization_url.startswith('https://checkout.paystack.com/')
        call = fake.initialized[0]
        assert call['email'] == 'ada@example.com'
        assert call['callback_url'] == f'http://testserver/invoices/{invoice1.id}'
        assert call['metadata']['invoice_id'] == invoice1.id

    def test_paid_invoice_rejected(self, session, scope1, invoice1):
        invoice1.status = InvoiceStatus.PAID
        session.commit()

        with pytest.raises(InvalidTransition):
            payment_service.create_payment_link(session, scope1, invoice1.id, client=FakePaystack())

    def test_customer_without_email_rejected(self, session, scope1, invoice1, customer1):
        customer1.email = None
        session.commit()

        with pytest.raises(ValidationError):
            payment_service.create_payment_link(session, scope1, invoice1.id, client=FakePaystack())

    def test_gateway_failure_is_operation_failed(self, session, scope1, invoice1):
        with pytest.raises(OperationFailed) as exc:
            payment_service.create_payment_link(session, scope1, invoice1.id, client=FakePaystack(fail=True))

        assert exc.value.status_code == 502
        assert session.query(Payment).count() == 0


class TestReconcile:

    def test_full_charge_marks_invoice_paid(self, session, invoice1, pending_payment):
        payment = payment_service.reconcile_successful_charge(session, pending_payment.reference, 100000)

        assert payment.status == PaymentStatus.SUCCESS
        assert invoice1.status == InvoiceStatus.PAID
        assert invoice1.amount_paid == Decimal('1000.00')
        assert invoice1.paid_at is not None
        assert session.query(AuditLog).filter_by(action=AuditAction.INVOICE_PAID).count() == 1

    def test_partial_charge(self, session, invoice1, pending_payment):
        payment_service.reconcile_successful_charge(session, pending_payment.reference, 25000)

        assert invoice1.status == InvoiceStatus.PARTIALLY_PAID
        assert invoice1.amount_paid == Decimal('250.00')
        assert session.query(AuditLog).filter_by(action=AuditAction.INVOICE_PARTIALLY_PAID).count() == 1

    def test_replayed_charge_applied_once(self, session, invoice1, pending_payment):
        payment_service.reconcile_successful_charge(session, pending_payment.reference, 25000)
        payment_service.reconcile_successful_charge(session, pending_payment.reference, 25000)

        assert invoice1.amount_paid == Decimal('250.00')

    def test_overpayment_capped_at_balance(self, session, invoice1, pending_payment):
        payment_service.reconcile_successful_charge(session, pending_payment.reference, 150000)

        assert invoice1.status == InvoiceStatus.PAID
        assert invoice1.amount_paid == Decimal('1000.00')

    def test_failed_charge(self, session, invoice1, pending_payment):
        payment = payment_service.mark_payment_failed(session, pending_payment.reference, 'abandoned')

        assert payment.status == PaymentStatus.FAILED
        assert payment.gateway_status == 'abandoned'
        assert invoice1.status == InvoiceStatus.DRAFT

    def test_verify_payment_reconciles(self, session, invoice1, pending_payment):
        fake = FakePaystack(verify_data={'status': 'success', 'amount': 100000})
        payment = payment_service.verify_payment(session, invoice1.id, pending_payment.reference, client=fake)

        assert payment.status == PaymentStatus.SUCCESS
        assert invoice1.status == InvoiceStatus.PAID

    def test_verify_payment_still_pending(self, session, invoice1, pending_payment):
        fake = FakePaystack(verify_data={'status': 'ongoing'})
        payment = payment_service.verify_payment(session, invoice1.id, pending_payment.reference, client=fake)

        assert payment.status == PaymentStatus.PENDING


class TestWebhookDispatch:

    def test_ignores_other_events(self, session):
        assert payment_service.handle_webhook_event(session, {'event': 'transfer.success', 'data': {}}) == 'ignored'

    def test_unknown_reference(self, session):
        event = {'event': 'charge.success', 'data': {'reference': 'INV-0-0000', 'amount': 100}}
        assert payment_service.handle_webhook_event(session, event) == 'unknown_reference'

    def test_charge_success_processed(self, session, invoice1, pending_payment):
        event = {'event': 'charge.success', 'data': {
            'reference': pending_payment.reference, 'amount': 100000, 'status': 'success',
        }}

        assert payment_service.handle_webhook_event(session, event) == 'processed'
        assert invoice1.status == InvoiceStatus.PAID


class TestManualPayment:

    def test_defaults_to_full_balance(self, session, scope1, invoice1):
        payment = payment_service.record_manual_payment(session, scope1, invoice1.id, {'payment_method': 'cash'})

        assert payment.amount == Decimal('1000.00')
        assert payment.method == 'cash'
        assert payment.reference.startswith('MANUAL-')
        assert invoice1.status == InvoiceStatus.PAID

    def test_partial_then_rest(self, session, scope1, invoice1):
        payment_service.record_manual_payment(session, scope1, invoice1.id, {'amount': Decimal('300')})
        assert invoice1.status == InvoiceStatus.PARTIALLY_PAID

        payment_service.record_manual_payment(session, scope1, invoice1.id, {})
        assert invoice1.status == InvoiceStatus.PAID
        assert invoice1.amount_paid == Decimal('1000.00')

    def test_already_paid_rejected(self, session, scope1, invoice1):
        payment_service.record_manual_payment(session, scope1, invoice1.id, {})

        with pytest.raises(BusinessLogicError) as exc:
            payment_service.record_manual_payment(session, scope1, invoice1.id, {})
        assert exc.value.status_code == 409

    def test_duplicate_reference_rejected(self, session, scope1, invoice1):
        payment_service.record_manual_payment(
            session, scope1, invoice1.id, {'amount': Decimal('100'), 'reference': 'TRF-1'}
        )

        with pytest.raises(ValidationError):
            payment_service.record_manual_payment(
                session, scope1, invoice1.id, {'amount': Decimal('100'), 'reference': 'TRF-1'}
            )
