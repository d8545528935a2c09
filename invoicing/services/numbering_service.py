"""
Invoice number allocation.

Numbers look like ``INV-2026-0001``. The sequence part comes from a
per-tenant counter row bumped with a single ``UPDATE ... SET last_value =
last_value + 1`` so two concurrent requests can never read the same value.
The row is seeded from the tenant's invoice count the first time it is
needed, which keeps existing tenants' sequences continuous.
"""
import logging
import re
from datetime import date

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import OperationFailed
from invoicing.models import Invoice, InvoiceCounter
from invoicing.tenancy import TenantScope, scoped_query

logger = logging.getLogger(__name__)

INVOICE_NUMBER_RE = re.compile(r'^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<seq>\d{4,})(?:-(?P<suffix>\d{3}))?$')

# Upper bound on numbers skipped because a user typed them in manually
MAX_SKIPS = 1000


def format_invoice_number(year: int, sequence: int, prefix: str = 'INV') -> str:
    return f"{prefix}-{year}-{sequence:04d}"


def parse_invoice_number(number: str):
    """
    Split an invoice number into ``(prefix, year, sequence, suffix)``.

    Accepts the older ``-NNN`` random-suffix form too. Returns None when the
    string is not an invoice number.
    """
    match = INVOICE_NUMBER_RE.match(number or '')
    if not match:
        return None
    return (
        match.group('prefix'),
        int(match.group('year')),
        int(match.group('seq')),
        match.group('suffix'),
    )


def _bump_counter(session, tenant_id):
    return session.query(InvoiceCounter).filter(
        InvoiceCounter.tenant_id == tenant_id
    ).update(
        {InvoiceCounter.last_value: InvoiceCounter.last_value + 1},
        synchronize_session=False
    )


def _next_sequence(session, scope: TenantScope) -> int:
    """Atomically take the next sequence value for the scope's tenant."""
    if _bump_counter(session, scope.tenant_id) == 0:
        seed = scoped_query(session, Invoice, scope).with_entities(func.count(Invoice.id)).scalar() + 1
        try:
            with session.begin_nested():
                session.add(InvoiceCounter(tenant_id=scope.tenant_id, last_value=seed))
            return seed
        except IntegrityError:
            # Another request seeded the row first; fall through to the normal path
            logger.info(f"Invoice counter for tenant {scope.tenant_id} seeded concurrently")
            _bump_counter(session, scope.tenant_id)

    return session.query(InvoiceCounter.last_value).filter(
        InvoiceCounter.tenant_id == scope.tenant_id
    ).scalar()


def _number_taken(session, scope: TenantScope, number: str) -> bool:
    return scoped_query(session, Invoice, scope).filter(
        Invoice.invoice_number == number
    ).first() is not None


def allocate_invoice_number(session, scope: TenantScope, today: date = None, commit: bool = True) -> str:
    """
    Reserve the next invoice number for the scope's tenant.

    Sequence values are never handed out twice, so numbers returned to
    concurrent callers are distinct. A reserved number that is never used
    leaves a gap, which is acceptable. Numbers already present (entered by
    hand) are skipped.

    Args:
        session: Database session
        scope: Tenant scope
        today: Date whose year goes into the number (defaults to today)
        commit: Commit the counter bump immediately. Pass False when the
            caller inserts the invoice in the same transaction.
    """
    year = (today or date.today()).year
    prefix = current_app.config.get('INVOICE_NUMBER_PREFIX', 'INV')

    for _ in range(MAX_SKIPS):
        number = format_invoice_number(year, _next_sequence(session, scope), prefix)
        if not _number_taken(session, scope, number):
            break
        logger.info(f"Invoice number {number} already used in tenant {scope.tenant_id}, skipping")
    else:
        session.rollback()
        logger.error(f"Could not allocate an invoice number for tenant {scope.tenant_id} after {MAX_SKIPS} attempts")
        raise OperationFailed()

    if commit:
        session.commit()
    return number
