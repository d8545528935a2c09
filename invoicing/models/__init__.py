"""Models package - exports all SQLAlchemy models."""
from invoicing.models.template import Template, BUILTIN_TEMPLATES
from invoicing.models.tenant import Tenant, TenantStatus
from invoicing.models.user import User, UserRole
from invoicing.models.customer import Customer
from invoicing.models.tax import Tax
from invoicing.models.invoice import Invoice, InvoiceItem, InvoiceTax, InvoiceCounter, InvoiceStatus
from invoicing.models.payment import Payment, PaymentStatus
from invoicing.models.audit_log import AuditLog, AuditAction, AuditLogImmutableError

__all__ = [
    'Template', 'BUILTIN_TEMPLATES',
    'Tenant', 'TenantStatus', 'User', 'UserRole',
    'Customer', 'Tax',
    'Invoice', 'InvoiceItem', 'InvoiceTax', 'InvoiceCounter', 'InvoiceStatus',
    'Payment', 'PaymentStatus',
    'AuditLog', 'AuditAction', 'AuditLogImmutableError',
]
