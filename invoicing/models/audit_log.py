"""
Audit Log model - append-only record of sensitive state changes.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum, event
from datetime import datetime
import enum
import json

from invoicing.database import Base, IdType


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    # Accounts
    USER_REGISTERED = "USER_REGISTERED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET = "PASSWORD_RESET"

    # Tenants
    TENANT_CREATED = "TENANT_CREATED"
    TENANT_UPDATED = "TENANT_UPDATED"
    TENANT_STATUS_CHANGED = "TENANT_STATUS_CHANGED"

    # Invoices
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    INVOICE_DELETED = "INVOICE_DELETED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_VIEWED = "INVOICE_VIEWED"
    INVOICE_PARTIALLY_PAID = "INVOICE_PARTIALLY_PAID"
    INVOICE_PAID = "INVOICE_PAID"
    INVOICE_MARKED_PAID = "INVOICE_MARKED_PAID"

    # Payments
    PAYMENT_LINK_GENERATED = "PAYMENT_LINK_GENERATED"
    PAYMENT_FAILED = "PAYMENT_FAILED"

    # Settings
    TAX_CREATED = "TAX_CREATED"
    TAX_UPDATED = "TAX_UPDATED"
    TAX_DELETED = "TAX_DELETED"
    SETTINGS_CHANGED = "SETTINGS_CHANGED"


class AuditLogImmutableError(Exception):
    """Raised when something tries to update or delete an audit row."""


class AuditLog(Base):
    """
    Audit log entry.

    ``user_id`` is NULL for system actors (webhooks, public views) and
    ``tenant_id`` is NULL for platform-level actions.
    """
    __tablename__ = 'audit_log'

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(IdType, ForeignKey('tenant.id'), nullable=True, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=True, index=True)
    action = Column(SQLEnum(AuditAction, name='audit_action'), nullable=False, index=True)
    entity_type = Column(String(50))  # e.g., 'INVOICE', 'USER', 'TAX'
    entity_id = Column(String(64))
    details = Column('metadata', Text)  # JSON
    ip_address = Column(String(45))  # IPv4 or IPv6
    user_agent = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'user_id': self.user_id,
            'action': self.action.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'metadata': json.loads(self.details) if self.details else None,
            'ip_address': self.ip_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.action.value} by user {self.user_id} at {self.created_at}>"


@event.listens_for(AuditLog, 'before_update')
def _reject_update(mapper, connection, target):
    raise AuditLogImmutableError(f"audit_log rows are append-only (id={target.id})")


@event.listens_for(AuditLog, 'before_delete')
def _reject_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"audit_log rows are append-only (id={target.id})")
