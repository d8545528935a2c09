"""
Transaction history report.

Invoices and payments for one tenant merged into a single ledger, newest
first, with totals over everything the filters matched.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import joinedload, selectinload

from invoicing.exceptions import ValidationError
from invoicing.models import Invoice, InvoiceStatus, Payment, PaymentStatus
from invoicing.services.invoice_lifecycle import to_money
from invoicing.tenancy import TenantScope, scoped_query

TRANSACTION_TYPES = ('invoice', 'payment')


def _customer_summary(customer):
    if customer is None:
        return None
    return {'id': customer.id, 'name': customer.name, 'email': customer.email}


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def _invoice_entry(invoice: Invoice) -> dict:
    item_count = len(invoice.items)
    return {
        'id': invoice.id,
        'type': 'invoice',
        'date': datetime.combine(invoice.issue_date, time.min),
        'reference': invoice.invoice_number,
        'customer': _customer_summary(invoice.customer),
        'description': f"Invoice for {item_count} item(s)",
        'amount': str(invoice.total),
        'currency': invoice.currency,
        'status': invoice.status.value,
        'metadata': {
            'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
            'subtotal': str(invoice.subtotal),
            'tax_amount': str(invoice.tax_amount),
            'balance_due': str(invoice.balance_due),
            'item_count': item_count,
        },
    }


def _payment_entry(payment: Payment) -> dict:
    invoice = payment.invoice
    return {
        'id': payment.id,
        'type': 'payment',
        'date': _naive(payment.paid_at or payment.created_at),
        'reference': payment.reference,
        'customer': _customer_summary(invoice.customer),
        'description': f"Payment for Invoice {invoice.invoice_number}",
        'amount': str(payment.amount),
        'currency': payment.currency,
        'status': payment.status.value,
        'metadata': {
            'payment_method': payment.method,
            'invoice_id': invoice.id,
        },
    }


def _invoices(session, scope, status, customer_id, start, end):
    query = scoped_query(session, Invoice, scope).options(
        joinedload(Invoice.customer), selectinload(Invoice.items)
    )
    if status:
        query = query.filter(Invoice.status == status)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if start:
        query = query.filter(Invoice.issue_date >= start)
    if end:
        query = query.filter(Invoice.issue_date <= end)
    return query.all()


def _payments(session, scope, customer_id, start, end):
    query = scoped_query(session, Payment, scope).options(
        joinedload(Payment.invoice).joinedload(Invoice.customer)
    )
    if customer_id:
        query = query.join(Invoice, Invoice.id == Payment.invoice_id).filter(Invoice.customer_id == customer_id)

    # Payments are dated by when they settled, falling back to when they were opened
    happened_at = func.coalesce(Payment.paid_at, Payment.created_at)
    if start:
        query = query.filter(happened_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(happened_at < datetime.combine(end + timedelta(days=1), time.min))
    return query.all()


def transaction_history(
    session,
    scope: TenantScope,
    txn_type: str = None,
    status: InvoiceStatus = None,
    customer_id: int = None,
    start: date = None,
    end: date = None,
    page: int = 1,
    per_page: int = 20
):
    """
    One page of the tenant's invoices and payments, newest first.

    ``status`` narrows invoices only; payments carry their own status.
    ``start`` and ``end`` are inclusive calendar days.

    Returns:
        (transactions, total, summary)

    Raises:
        ValidationError: unknown ``txn_type`` or ``start`` after ``end``
    """
    if txn_type is not None and txn_type not in TRANSACTION_TYPES:
        raise ValidationError([{
            'field': 'type', 'message': f"type must be one of: {', '.join(TRANSACTION_TYPES)}"
        }])
    if start and end and start > end:
        raise ValidationError([{'field': 'from', 'message': 'from must not be after to'}])

    invoices = _invoices(session, scope, status, customer_id, start, end) if txn_type in (None, 'invoice') else []
    payments = _payments(session, scope, customer_id, start, end) if txn_type in (None, 'payment') else []

    entries = [_invoice_entry(invoice) for invoice in invoices] + [_payment_entry(payment) for payment in payments]
    entries.sort(key=lambda entry: (entry['date'], entry['type'], entry['id']), reverse=True)

    summary = {
        'total_transactions': len(entries),
        'total_invoices': len(invoices),
        'total_payments': len(payments),
        'total_invoiced': str(to_money(sum((invoice.total for invoice in invoices), Decimal('0')))),
        'total_paid': str(to_money(sum(
            (payment.amount for payment in payments if payment.status == PaymentStatus.SUCCESS), Decimal('0')
        ))),
        'total_outstanding': str(to_money(sum((invoice.balance_due for invoice in invoices), Decimal('0')))),
    }

    window = entries[(page - 1) * per_page:page * per_page]
    for entry in window:
        entry['date'] = entry['date'].isoformat()
    return window, len(entries), summary
