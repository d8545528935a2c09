"""
Invoice lifecycle state machine.

    DRAFT -> SENT -> VIEWED -> PARTIALLY_PAID -> PAID

Status only ever moves forward. PAID is terminal; there is no operation
that reopens a paid invoice.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import SQLAlchemyError

from invoicing.exceptions import InvalidTransition, NotFoundError, OperationFailed, ValidationError
from invoicing.models import Invoice, InvoiceStatus
from invoicing.tenancy import TenantScope, scoped_query

logger = logging.getLogger(__name__)

STATUS_RANK = {
    InvoiceStatus.DRAFT: 0,
    InvoiceStatus.SENT: 1,
    InvoiceStatus.VIEWED: 2,
    InvoiceStatus.PARTIALLY_PAID: 3,
    InvoiceStatus.PAID: 4,
}

TERMINAL_STATUSES = frozenset({InvoiceStatus.PAID})

CENTS = Decimal('0.01')


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def payment_stamp(status: InvoiceStatus) -> str:
    """Display label derived from status: UNPAID, PARTIALLY_PAID or PAID."""
    if status == InvoiceStatus.PAID:
        return 'PAID'
    if status == InvoiceStatus.PARTIALLY_PAID:
        return 'PARTIALLY_PAID'
    return 'UNPAID'


def is_forward(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return STATUS_RANK[target] >= STATUS_RANK[current]


def get_invoice(session, scope: TenantScope, invoice_id: int, for_update: bool = False) -> Invoice:
    """
    Load an invoice inside the scope's tenant.

    Raises:
        NotFoundError: no such invoice in this tenant
        OperationFailed: the lookup itself failed
    """
    try:
        query = scoped_query(session, Invoice, scope).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        invoice = query.first()
    except SQLAlchemyError as e:
        logger.error(f"Error loading invoice {invoice_id} for tenant {scope.tenant_id}: {e}", exc_info=True)
        raise OperationFailed() from e

    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def ensure_editable(invoice: Invoice):
    if invoice.status in TERMINAL_STATUSES:
        raise InvalidTransition("Paid invoices cannot be modified")


def mark_sent(invoice: Invoice, now: datetime = None) -> bool:
    """
    Record a send. Only DRAFT advances to SENT; re-sending a later-state
    invoice leaves its status alone. Returns True if the status changed.
    """
    now = now or datetime.utcnow()
    invoice.sent_at = now
    if invoice.status == InvoiceStatus.DRAFT:
        invoice.status = InvoiceStatus.SENT
        return True
    return False


def record_public_view(session, invoice: Invoice, now: datetime = None) -> bool:
    """
    Track an unauthenticated read of ``invoice``.

    Both writes are conditional so concurrent first views cannot assign
    ``viewed_at`` twice or regress a later status:

        UPDATE invoice SET viewed_at = :now WHERE id = :id AND viewed_at IS NULL
        UPDATE invoice SET status = 'VIEWED' WHERE id = :id AND status = 'SENT'

    Returns True if this call was the first view. The caller commits.
    """
    now = now or datetime.utcnow()
    base = session.query(Invoice).filter(Invoice.id == invoice.id)

    first_view = base.filter(Invoice.viewed_at.is_(None)).update(
        {Invoice.viewed_at: now}, synchronize_session=False
    ) == 1
    base.filter(Invoice.status == InvoiceStatus.SENT).update(
        {Invoice.status: InvoiceStatus.VIEWED}, synchronize_session=False
    )
    session.refresh(invoice)
    return first_view


def apply_payment(invoice: Invoice, amount, now: datetime = None) -> InvoiceStatus:
    """
    Add ``amount`` to the invoice's cumulative payments and derive the status.

    Cumulative paid < total moves the invoice to PARTIALLY_PAID, paid ==
    total moves it to PAID. The invoice row should be locked by the caller
    (``get_invoice(..., for_update=True)``).

    Raises:
        InvalidTransition: invoice already PAID
        ValidationError: non-positive amount or amount above the balance due
    """
    if invoice.status in TERMINAL_STATUSES:
        raise InvalidTransition("Invoice is already paid")

    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError([{'field': 'amount', 'message': 'Payment amount must be greater than zero'}])

    balance = to_money(invoice.balance_due)
    if amount > balance:
        raise ValidationError([{'field': 'amount', 'message': f'Payment amount exceeds balance due ({balance})'}])

    invoice.amount_paid = to_money(invoice.amount_paid or 0) + amount
    if invoice.amount_paid >= to_money(invoice.total):
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now or datetime.utcnow()
    else:
        invoice.status = InvoiceStatus.PARTIALLY_PAID
    return invoice.status
