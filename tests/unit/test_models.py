"""
Unit tests for SQLAlchemy models.
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from invoicing.models import (
    AuditAction, AuditLog, AuditLogImmutableError, Invoice, InvoiceStatus, Tax, Tenant, User,
)
from invoicing.services.audit_service import log_action


class TestTenantModel:
    """Tests for Tenant model."""

    def test_create_tenant_defaults_to_active(self, session):
        tenant = Tenant(slug='acme-x1', company_name='Acme')
        session.add(tenant)
        session.commit()

        assert tenant.id is not None
        assert tenant.is_active is True
        assert tenant.currency == 'NGN'

    def test_tenant_slug_unique(self, session, tenant1):
        """Test that tenant slug must be unique."""
        session.add(Tenant(slug=tenant1.slug, company_name='Duplicate'))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()


class TestUserModel:
    """Tests for User model."""

    def test_email_is_normalized(self, session):
        user = User(email='  Mixed.Case@Example.COM ', full_name='Mixed')
        user.set_password('password123')
        session.add(user)
        session.commit()

        assert user.email == 'mixed.case@example.com'

    def test_password_is_hashed(self, session):
        user = User(email='hash@example.com')
        user.set_password('securepassword')

        assert user.password_hash != 'securepassword'
        assert user.password_hash.startswith('scrypt:')
        assert user.check_password('securepassword') is True
        assert user.check_password('wrong-password') is False

    def test_to_dict_never_exposes_secrets(self, user1):
        data = user1.to_dict()

        assert 'password_hash' not in data
        assert 'reset_token_hash' not in data
        assert data['role'] == 'OWNER'


class TestInvoiceModel:
    """Tests for Invoice model."""

    def test_balance_due(self, invoice1):
        assert invoice1.total == Decimal('1000.00')
        assert invoice1.balance_due == Decimal('1000.00')

        invoice1.amount_paid = Decimal('250.00')
        assert invoice1.balance_due == Decimal('750.00')

    def test_items_keep_entry_order(self, invoice1):
        assert [item.description for item in invoice1.items] == ['Consulting', 'Support']
        assert [item.position for item in invoice1.items] == [0, 1]

    def test_number_unique_per_tenant(self, session, invoice1, customer1):
        session.add(Invoice(
            tenant_id=invoice1.tenant_id,
            customer_id=customer1.id,
            invoice_number=invoice1.invoice_number,
            issue_date=invoice1.issue_date,
        ))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_same_number_allowed_in_other_tenant(self, session, invoice1, customer2):
        other = Invoice(
            tenant_id=customer2.tenant_id,
            customer_id=customer2.id,
            invoice_number=invoice1.invoice_number,
            issue_date=invoice1.issue_date,
        )
        session.add(other)
        session.commit()

        assert other.id is not None

    def test_to_dict_reports_payment_stamp(self, invoice1):
        data = invoice1.to_dict()

        assert data['status'] == InvoiceStatus.DRAFT.value
        assert data['payment_stamp'] == 'UNPAID'
        assert len(data['items']) == 2


class TestTaxModel:

    def test_rate_must_be_a_percentage(self, session, tenant1):
        session.add(Tax(tenant_id=tenant1.id, name='Broken', rate=Decimal('150')))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()


class TestAuditLogModel:
    """Audit rows are append-only."""

    def _entry(self, session, tenant1):
        log_action(session, AuditAction.TENANT_UPDATED, tenant_id=tenant1.id,
                   entity_type='TENANT', entity_id=tenant1.id, details={'field': 'phone'})
        session.commit()
        return session.query(AuditLog).one()

    def test_update_rejected(self, session, tenant1):
        entry = self._entry(session, tenant1)
        entry.entity_type = 'CHANGED'

        with pytest.raises(AuditLogImmutableError):
            session.commit()
        session.rollback()

    def test_delete_rejected(self, session, tenant1):
        entry = self._entry(session, tenant1)
        session.delete(entry)

        with pytest.raises(AuditLogImmutableError):
            session.commit()
        session.rollback()

    def test_to_dict_decodes_metadata(self, session, tenant1):
        entry = self._entry(session, tenant1)

        assert entry.to_dict()['metadata'] == {'field': 'phone'}
        assert entry.to_dict()['entity_id'] == str(tenant1.id)
