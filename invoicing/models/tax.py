"""Tax model."""
from sqlalchemy import Column, String, Text, Boolean, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class Tax(Base):
    """Tenant tax rate. At most one per tenant has ``is_default`` set."""

    __tablename__ = 'tax'

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(IdType, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    rate = Column(Numeric(5, 2), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    tenant = relationship('Tenant')

    __table_args__ = (
        CheckConstraint('rate >= 0 AND rate <= 100', name='check_tax_rate_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'rate': str(self.rate),
            'description': self.description,
            'is_default': self.is_default,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Tax(id={self.id}, name='{self.name}', rate={self.rate}, is_default={self.is_default})>"
