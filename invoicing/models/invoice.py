"""Invoice, line item and applied tax models."""
import enum
from decimal import Decimal

from sqlalchemy import (
    Column, String, Text, Date, DateTime, Integer, Numeric, ForeignKey,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class InvoiceStatus(enum.Enum):
    """Invoice lifecycle states, in lifecycle order."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class Invoice(Base):
    """Customer invoice. ``invoice_number`` is unique per tenant."""

    __tablename__ = 'invoice'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoice_tenant_number'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(IdType, ForeignKey('tenant.id'), nullable=False, index=True)
    customer_id = Column(IdType, ForeignKey('customer.id'), nullable=False, index=True)
    template_id = Column(IdType, ForeignKey('template.id'), nullable=True)
    invoice_number = Column(String(50), nullable=False)
    status = Column(SQLEnum(InvoiceStatus, name='invoice_status'), nullable=False, default=InvoiceStatus.DRAFT)
    currency = Column(String(3), nullable=False, default='NGN')
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    subtotal = Column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    tax_amount = Column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    total = Column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))
    amount_paid = Column(Numeric(14, 2), nullable=False, default=Decimal('0.00'))

    sent_at = Column(DateTime, nullable=True)
    viewed_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    customer = relationship('Customer', back_populates='invoices')
    template = relationship('Template')
    items = relationship(
        'InvoiceItem', back_populates='invoice',
        cascade='all, delete-orphan', order_by='InvoiceItem.position',
    )
    taxes = relationship('InvoiceTax', back_populates='invoice', cascade='all, delete-orphan')
    payments = relationship('Payment', back_populates='invoice', order_by='Payment.id')

    @property
    def balance_due(self):
        return Decimal(self.total or 0) - Decimal(self.amount_paid or 0)

    def to_dict(self, include_items=True):
        from invoicing.services.invoice_lifecycle import payment_stamp

        data = {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'status': self.status.value,
            'payment_stamp': payment_stamp(self.status),
            'customer_id': self.customer_id,
            'template_id': self.template_id,
            'currency': self.currency,
            'issue_date': self.issue_date.isoformat() if self.issue_date else None,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'notes': self.notes,
            'terms': self.terms,
            'subtotal': str(self.subtotal),
            'tax_amount': str(self.tax_amount),
            'total': str(self.total),
            'amount_paid': str(self.amount_paid),
            'balance_due': str(self.balance_due),
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'viewed_at': self.viewed_at.isoformat() if self.viewed_at else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
            data['taxes'] = [tax.to_dict() for tax in self.taxes]
        return data

    def __repr__(self):
        return f"<Invoice(id={self.id}, invoice_number='{self.invoice_number}', status={self.status})>"


class InvoiceItem(Base):
    """Invoice line item. ``position`` keeps the order the user entered."""

    __tablename__ = 'invoice_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id'), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    invoice = relationship('Invoice', back_populates='items')

    def to_dict(self):
        return {
            'id': self.id,
            'position': self.position,
            'description': self.description,
            'quantity': str(self.quantity),
            'unit_price': str(self.unit_price),
            'amount': str(self.amount),
        }


class InvoiceTax(Base):
    """Tax applied to an invoice, with the rate frozen at the time it was applied."""

    __tablename__ = 'invoice_tax'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id'), nullable=False, index=True)
    tax_id = Column(IdType, ForeignKey('tax.id', ondelete='SET NULL'), nullable=True)
    name = Column(String(100), nullable=False)
    rate = Column(Numeric(5, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    invoice = relationship('Invoice', back_populates='taxes')

    def to_dict(self):
        return {
            'tax_id': self.tax_id,
            'name': self.name,
            'rate': str(self.rate),
            'amount': str(self.amount),
        }


class InvoiceCounter(Base):
    """Per-tenant monotonic sequence backing invoice numbers. Holds the last value handed out."""

    __tablename__ = 'invoice_counter'

    tenant_id = Column(IdType, ForeignKey('tenant.id'), primary_key=True)
    last_value = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<InvoiceCounter(tenant_id={self.tenant_id}, last_value={self.last_value})>"
