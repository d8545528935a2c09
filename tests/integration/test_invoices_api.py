"""
Integration tests for the invoice API and the public invoice link.
"""

from datetime import date

import pytest

from invoicing.models import AuditAction, AuditLog, Invoice, InvoiceStatus
from invoicing.services import invoice_service
from invoicing.services.numbering_service import format_invoice_number


def _invoice_payload(customer_id, **overrides):
    payload = {
        'customer_id': customer_id,
        'issue_date': '2026-03-01',
        'due_date': '2026-03-31',
        'items': [
            {'description': 'Website build', 'quantity': '1', 'unit_price': '150000.00'},
            {'description': 'Hosting (months)', 'quantity': '12', 'unit_price': '5000.00'},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateAndRead:

    def test_create_computes_totals(self, authenticated_client, customer1, vat1):
        response = authenticated_client.post('/api/invoices', json=_invoice_payload(customer1.id))

        assert response.status_code == 201
        invoice = response.get_json()['invoice']
        assert invoice['status'] == 'DRAFT'
        assert invoice['payment_stamp'] == 'UNPAID'
        assert invoice['invoice_number'] == format_invoice_number(date.today().year, 1)
        assert invoice['subtotal'] == '210000.00'
        assert invoice['tax_amount'] == '15750.00'
        assert invoice['total'] == '225750.00'
        assert [item['description'] for item in invoice['items']] == ['Website build', 'Hosting (months)']

    def test_client_totals_are_not_accepted(self, authenticated_client, customer1):
        response = authenticated_client.post('/api/invoices', json=_invoice_payload(customer1.id, total='1.00'))

        assert response.status_code == 400

    def test_validation_error_lists_fields(self, authenticated_client, customer1):
        response = authenticated_client.post('/api/invoices', json=_invoice_payload(customer1.id, items=[]))

        assert response.status_code == 400
        body = response.get_json()
        assert body['message'] == 'At least one line item is required'
        assert body['errors'][0]['field'] == 'items'

    def test_unknown_customer(self, authenticated_client):
        response = authenticated_client.post('/api/invoices', json=_invoice_payload(99999))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Customer not found'

    def test_duplicate_number_rejected(self, authenticated_client, invoice1, customer1):
        response = authenticated_client.post(
            '/api/invoices', json=_invoice_payload(customer1.id, invoice_number=invoice1.invoice_number)
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invoice number already exists'

    def test_generate_number_reserves_sequence(self, authenticated_client, invoice1):
        year = date.today().year
        first = authenticated_client.get('/api/invoices/generate-number').get_json()['invoice_number']
        second = authenticated_client.get('/api/invoices/generate-number').get_json()['invoice_number']

        assert first == format_invoice_number(year, 2)
        assert second == format_invoice_number(year, 3)

    def test_get_includes_customer_and_payments(self, authenticated_client, invoice1):
        response = authenticated_client.get(f'/api/invoices/{invoice1.id}')

        assert response.status_code == 200
        data = response.get_json()['invoice']
        assert data['customer']['name'] == 'Ada Obi'
        assert data['payments'] == []

    def test_list_filters(self, authenticated_client, session, scope1, customer1, invoice1):
        other = invoice_service.create_invoice(session, scope1, {
            'customer_id': customer1.id,
            'issue_date': date(2025, 6, 1),
            'tax_ids': [],
            'items': [{'description': 'Old work', 'quantity': 1, 'unit_price': 10}],
        })
        other.status = InvoiceStatus.SENT
        session.commit()

        by_status = authenticated_client.get('/api/invoices?status=sent').get_json()
        by_date = authenticated_client.get('/api/invoices?to=2025-12-31').get_json()
        by_search = authenticated_client.get(f'/api/invoices?search={invoice1.invoice_number}').get_json()
        paged = authenticated_client.get('/api/invoices?limit=1&page=2').get_json()

        assert [i['id'] for i in by_status['invoices']] == [other.id]
        assert [i['id'] for i in by_date['invoices']] == [other.id]
        assert [i['id'] for i in by_search['invoices']] == [invoice1.id]
        assert paged['pagination'] == {'page': 2, 'limit': 1, 'total': 2, 'pages': 2}
        assert len(paged['invoices']) == 1

    def test_bad_status_filter(self, authenticated_client):
        response = authenticated_client.get('/api/invoices?status=LOST')

        assert response.status_code == 400


class TestUpdateAndDelete:

    def test_update_recomputes_totals(self, authenticated_client, invoice1):
        response = authenticated_client.patch(f'/api/invoices/{invoice1.id}', json={
            'items': [{'description': 'Rework', 'quantity': '3', 'unit_price': '100'}],
        })

        assert response.status_code == 200
        assert response.get_json()['invoice']['total'] == '300.00'

    @pytest.mark.parametrize('field', ['issue_date', 'currency', 'customer_id'])
    def test_null_required_field_is_400(self, authenticated_client, session, invoice1, field):
        response = authenticated_client.patch(f'/api/invoices/{invoice1.id}', json={field: None})

        assert response.status_code == 400
        assert response.get_json()['errors'][0]['field'] == field
        session.expire_all()
        assert invoice1.currency == 'NGN'
        assert invoice1.issue_date is not None

    def test_paid_invoice_is_frozen(self, authenticated_client, session, invoice1):
        invoice1.status = InvoiceStatus.PAID
        invoice1.amount_paid = invoice1.total
        session.commit()

        patch = authenticated_client.patch(f'/api/invoices/{invoice1.id}', json={'notes': 'late edit'})
        delete = authenticated_client.delete(f'/api/invoices/{invoice1.id}')

        assert patch.status_code == 409
        assert patch.get_json()['message'] == 'Paid invoices cannot be modified'
        assert delete.status_code == 409

    def test_total_cannot_drop_below_paid(self, authenticated_client, invoice1):
        authenticated_client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={'amount': '600'})

        response = authenticated_client.patch(f'/api/invoices/{invoice1.id}', json={
            'items': [{'description': 'Discounted', 'quantity': '1', 'unit_price': '500'}],
        })

        assert response.status_code == 409

    def test_delete_draft(self, authenticated_client, session, invoice1):
        response = authenticated_client.delete(f'/api/invoices/{invoice1.id}')

        assert response.status_code == 200
        session.expire_all()
        assert session.get(Invoice, invoice1.id) is None
        assert session.query(AuditLog).filter_by(action=AuditAction.INVOICE_DELETED).count() == 1


class TestRoles:

    def test_staff_cannot_delete_or_record_payments(self, login_as, staff_user, invoice1):
        client = login_as(staff_user)

        assert client.get('/api/invoices').status_code == 200
        assert client.delete(f'/api/invoices/{invoice1.id}').status_code == 403
        assert client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={}).status_code == 403

    def test_anonymous_gets_401(self, client):
        assert client.get('/api/invoices').status_code == 401


class TestSendAndPay:

    def test_send_then_mark_paid(self, authenticated_client, session, invoice1, monkeypatch):
        monkeypatch.setattr(invoice_service, 'send_invoice_email', lambda *args, **kwargs: True)

        sent = authenticated_client.post(f'/api/invoices/{invoice1.id}/send', json={'method': 'email'})
        assert sent.status_code == 200
        assert sent.get_json()['invoice']['status'] == 'SENT'

        partial = authenticated_client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={'amount': '250.00'})
        assert partial.get_json()['invoice']['status'] == 'PARTIALLY_PAID'
        assert partial.get_json()['invoice']['payment_stamp'] == 'PARTIALLY_PAID'

        rest = authenticated_client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={})
        assert rest.status_code == 200
        assert rest.get_json()['payment']['amount'] == '750.00'
        assert rest.get_json()['invoice']['status'] == 'PAID'

        again = authenticated_client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={})
        assert again.status_code == 409

    def test_overpayment_rejected(self, authenticated_client, invoice1):
        response = authenticated_client.post(f'/api/invoices/{invoice1.id}/mark-paid', json={'amount': '1000.01'})

        assert response.status_code == 400

    def test_delivery_failure_is_502(self, authenticated_client, session, invoice1, monkeypatch):
        monkeypatch.setattr(invoice_service, 'send_invoice_email', lambda *args, **kwargs: False)

        response = authenticated_client.post(f'/api/invoices/{invoice1.id}/send', json={})

        assert response.status_code == 502
        session.expire_all()
        assert session.get(Invoice, invoice1.id).status == InvoiceStatus.DRAFT


class TestPublicInvoice:

    @pytest.fixture
    def sent_invoice(self, session, invoice1):
        invoice1.status = InvoiceStatus.SENT
        session.commit()
        return invoice1

    def test_public_view_needs_no_login(self, client, sent_invoice):
        response = client.get(f'/api/public/invoices/{sent_invoice.id}')

        assert response.status_code == 200
        data = response.get_json()['invoice']
        assert data['invoice_number'] == sent_invoice.invoice_number
        assert data['tenant']['company_name'] == 'Acme Ltd'
        assert data['customer']['name'] == 'Ada Obi'
        assert len(data['items']) == 2

    def test_first_view_marks_viewed_once(self, client, session, sent_invoice):
        first = client.get(f'/api/public/invoices/{sent_invoice.id}').get_json()['invoice']
        second = client.get(f'/api/public/invoices/{sent_invoice.id}').get_json()['invoice']

        assert first['status'] == second['status'] == 'VIEWED'
        assert first['viewed_at'] == second['viewed_at'] is not None
        viewed_entries = session.query(AuditLog).filter_by(action=AuditAction.INVOICE_VIEWED).all()
        assert len(viewed_entries) == 1
        assert viewed_entries[0].user_id is None

    def test_public_view_of_paid_invoice_keeps_paid(self, client, session, invoice1):
        invoice1.status = InvoiceStatus.PAID
        invoice1.amount_paid = invoice1.total
        session.commit()

        data = client.get(f'/api/public/invoices/{invoice1.id}').get_json()['invoice']

        assert data['status'] == 'PAID'
        assert data['payment_stamp'] == 'PAID'

    def test_unknown_invoice(self, client):
        response = client.get('/api/public/invoices/424242')

        assert response.status_code == 404

    def test_verify_payment_requires_reference(self, client, sent_invoice):
        response = client.get(f'/api/public/invoices/{sent_invoice.id}/verify-payment')

        assert response.status_code == 400
