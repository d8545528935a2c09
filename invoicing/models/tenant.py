"""Tenant model - each company invoicing through the platform."""
import enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class TenantStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class Tenant(Base):
    """Company record; unit of data partitioning."""

    __tablename__ = 'tenant'

    id = Column(IdType, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)
    company_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default='NGN')
    status = Column(SQLEnum(TenantStatus), nullable=False, default=TenantStatus.ACTIVE)
    default_template_id = Column(IdType, ForeignKey('template.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    users = relationship('User', back_populates='tenant')
    default_template = relationship('Template')

    @property
    def is_active(self):
        return self.status == TenantStatus.ACTIVE

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'company_name': self.company_name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'currency': self.currency,
            'status': self.status.value,
            'default_template_id': self.default_template_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', status={self.status.value})>"
