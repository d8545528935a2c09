"""Payment model - gateway and manual payments recorded against invoices."""
import enum

from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class PaymentStatus(enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Payment(Base):
    """
    One payment attempt.

    Gateway payments start PENDING with the Paystack reference and are
    reconciled exactly once; manual payments are created as SUCCESS.
    """

    __tablename__ = 'payment'

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(IdType, ForeignKey('tenant.id'), nullable=False, index=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id'), nullable=False, index=True)
    reference = Column(String(100), nullable=False, unique=True)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='NGN')
    method = Column(String(30), nullable=False, default='paystack')
    status = Column(SQLEnum(PaymentStatus, name='payment_status'), nullable=False, default=PaymentStatus.PENDING)
    gateway_status = Column(String(50), nullable=True)
    authorization_url = Column(String(500), nullable=True)
    # Column is named "metadata" in the table; the attribute name is reserved by declarative
    details = Column('metadata', Text, nullable=True)
    notes = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    invoice = relationship('Invoice', back_populates='payments')

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_id': self.invoice_id,
            'reference': self.reference,
            'amount': str(self.amount),
            'currency': self.currency,
            'method': self.method,
            'status': self.status.value,
            'authorization_url': self.authorization_url,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
        }

    def __repr__(self):
        return f"<Payment(id={self.id}, reference='{self.reference}', status={self.status})>"
