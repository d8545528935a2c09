"""
Integration tests for the Paystack webhook endpoint.
"""

import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from invoicing.models import Invoice, InvoiceStatus, Payment, PaymentStatus

SECRET = b'sk_test_secret'


def _signed(client, event, secret=SECRET):
    body = json.dumps(event).encode('utf-8')
    signature = hmac.new(secret, body, hashlib.sha512).hexdigest()
    return client.post('/webhooks/paystack', data=body, content_type='application/json',
                       headers={'x-paystack-signature': signature})


@pytest.fixture
def pending_payment(session, invoice1):
    payment = Payment(
        tenant_id=invoice1.tenant_id,
        invoice_id=invoice1.id,
        reference='INV-1700000000000-0001',
        amount=Decimal('1000.00'),
        status=PaymentStatus.PENDING,
    )
    session.add(payment)
    session.commit()
    return payment


class TestPaystackWebhook:

    def test_charge_success_pays_invoice(self, client, session, pending_payment):
        response = _signed(client, {
            'event': 'charge.success',
            'data': {'reference': pending_payment.reference, 'amount': 100000, 'status': 'success'},
        })

        assert response.status_code == 200
        assert response.get_json() == {'status': 'ok', 'result': 'processed'}
        session.expire_all()
        assert session.get(Payment, pending_payment.id).status == PaymentStatus.SUCCESS
        assert session.get(Invoice, pending_payment.invoice_id).status == InvoiceStatus.PAID

    def test_replayed_event_counts_once(self, client, session, pending_payment):
        event = {
            'event': 'charge.success',
            'data': {'reference': pending_payment.reference, 'amount': 40000, 'status': 'success'},
        }

        _signed(client, event)
        replay = _signed(client, event)

        assert replay.status_code == 200
        session.expire_all()
        invoice = session.get(Invoice, pending_payment.invoice_id)
        assert invoice.amount_paid == Decimal('400.00')
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID

    def test_charge_failed(self, client, session, pending_payment):
        response = _signed(client, {
            'event': 'charge.failed',
            'data': {'reference': pending_payment.reference, 'status': 'failed'},
        })

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Payment, pending_payment.id).status == PaymentStatus.FAILED
        assert session.get(Invoice, pending_payment.invoice_id).status == InvoiceStatus.DRAFT

    def test_bad_signature_rejected(self, client, session, pending_payment):
        response = _signed(client, {
            'event': 'charge.success',
            'data': {'reference': pending_payment.reference, 'amount': 100000},
        }, secret=b'not-the-secret')

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid signature'
        session.expire_all()
        assert session.get(Payment, pending_payment.id).status == PaymentStatus.PENDING

    def test_missing_signature_rejected(self, client):
        response = client.post('/webhooks/paystack', json={'event': 'charge.success'})

        assert response.status_code == 401

    def test_other_events_are_acknowledged(self, client):
        response = _signed(client, {'event': 'transfer.success', 'data': {'reference': 'TRF-1'}})

        assert response.status_code == 200
        assert response.get_json()['result'] == 'ignored'

    def test_unknown_reference_is_acknowledged(self, client):
        response = _signed(client, {'event': 'charge.success', 'data': {'reference': 'INV-0-0000', 'amount': 100}})

        assert response.status_code == 200
        assert response.get_json()['result'] == 'unknown_reference'
