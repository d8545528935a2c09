"""
Unit tests for invoice number allocation.
"""

import threading
from datetime import date
from decimal import Decimal

import pytest

from invoicing.database import get_session
from invoicing.models import Invoice, InvoiceCounter
from invoicing.services import invoice_service
from invoicing.services.numbering_service import (
    allocate_invoice_number, format_invoice_number, parse_invoice_number,
)


class TestFormatting:

    def test_format_pads_sequence(self):
        assert format_invoice_number(2026, 7) == 'INV-2026-0007'
        assert format_invoice_number(2026, 12345) == 'INV-2026-12345'

    def test_parse_round_trip(self):
        assert parse_invoice_number('INV-2026-0042') == ('INV', 2026, 42, None)

    def test_parse_accepts_legacy_suffix(self):
        assert parse_invoice_number('INV-2025-0003-417') == ('INV', 2025, 3, '417')

    @pytest.mark.parametrize('value', ['', None, 'INV-26-0001', 'invoice 1', 'INV-2026-01'])
    def test_parse_rejects_other_strings(self, value):
        assert parse_invoice_number(value) is None


class TestAllocation:

    def test_first_number_of_tenant(self, scope1):
        assert allocate_invoice_number(get_session(), scope1, today=date(2026, 3, 1)) == 'INV-2026-0001'

    def test_sequence_increments(self, scope1):
        session = get_session()
        first = allocate_invoice_number(session, scope1, today=date(2026, 3, 1))
        second = allocate_invoice_number(session, scope1, today=date(2026, 3, 1))

        assert (first, second) == ('INV-2026-0001', 'INV-2026-0002')

    def test_tenants_have_independent_sequences(self, scope1, scope2):
        session = get_session()
        allocate_invoice_number(session, scope1, today=date(2026, 1, 1))
        allocate_invoice_number(session, scope1, today=date(2026, 1, 1))

        assert allocate_invoice_number(session, scope2, today=date(2026, 1, 1)) == 'INV-2026-0001'

    def test_counter_seeded_from_existing_invoices(self, session, scope1, customer1):
        for number in ('INV-2026-0001', 'INV-2026-0002'):
            session.add(Invoice(
                tenant_id=scope1.tenant_id, customer_id=customer1.id,
                invoice_number=number, issue_date=date(2026, 1, 1),
            ))
        session.commit()

        assert allocate_invoice_number(session, scope1, today=date(2026, 1, 1)) == 'INV-2026-0003'
        counter = session.query(InvoiceCounter).filter_by(tenant_id=scope1.tenant_id).one()
        assert counter.last_value == 3

    def test_skips_numbers_entered_by_hand(self, session, scope1, customer1, invoice1):
        year = date.today().year
        invoice_service.create_invoice(session, scope1, {
            'customer_id': customer1.id,
            'invoice_number': format_invoice_number(year, 2),
            'tax_ids': [],
            'items': [{'description': 'Manual', 'quantity': Decimal('1'), 'unit_price': Decimal('10')}],
        })

        assert invoice1.invoice_number == format_invoice_number(year, 1)
        assert allocate_invoice_number(session, scope1) == format_invoice_number(year, 3)

    def test_uses_configured_prefix(self, app, scope1):
        app.config['INVOICE_NUMBER_PREFIX'] = 'BILL'
        try:
            number = allocate_invoice_number(get_session(), scope1, today=date(2026, 5, 5))
        finally:
            app.config['INVOICE_NUMBER_PREFIX'] = 'INV'

        assert number == 'BILL-2026-0001'


class TestConcurrentAllocation:

    def test_concurrent_callers_get_distinct_numbers(self, app, session, scope1):
        # Seed the counter row so workers only race on the increment
        first = allocate_invoice_number(session, scope1, today=date(2026, 1, 1))
        session.commit()

        results, errors = [], []
        lock = threading.Lock()

        def worker():
            with app.app_context():
                try:
                    number = allocate_invoice_number(get_session(), scope1, today=date(2026, 1, 1))
                except Exception as e:  # collected and asserted below
                    with lock:
                        errors.append(e)
                    return
                with lock:
                    results.append(number)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 8
        assert len(set(results) | {first}) == 9
