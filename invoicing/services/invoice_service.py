"""Invoice service with transactional logic - Multi-Tenant."""
import logging
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import BusinessLogicError, NotFoundError, ValidationError
from invoicing.models import (
    Customer, Invoice, InvoiceItem, InvoiceTax, InvoiceStatus, Tax, Template, Tenant, AuditAction,
)
from invoicing.services import invoice_lifecycle as lifecycle
from invoicing.services.audit_service import log_action, log_scoped_action
from invoicing.services.email_service import send_invoice_email
from invoicing.services.numbering_service import allocate_invoice_number
from invoicing.services.sms_service import build_invoice_sms, send_sms
from invoicing.services.tax_service import get_default_tax
from invoicing.tenancy import TenantScope, scoped_query

logger = logging.getLogger(__name__)


def public_invoice_link(invoice_id: int) -> str:
    return f"{current_app.config['APP_BASE_URL']}/invoices/{invoice_id}"


def format_amount(amount, currency: str) -> str:
    return f"{currency} {Decimal(amount):,.2f}"


def list_invoices(
    session,
    scope: TenantScope,
    search: str = None,
    status: InvoiceStatus = None,
    customer_id: int = None,
    date_from: date = None,
    date_to: date = None,
    page: int = 1,
    per_page: int = 20
):
    """
    Page through the tenant's invoices, newest first.

    ``search`` matches the invoice number or the customer name.

    Returns:
        (invoices, total)
    """
    query = scoped_query(session, Invoice, scope)

    if search:
        term = f"%{search.lower()}%"
        query = query.join(Customer, Customer.id == Invoice.customer_id).filter(or_(
            func.lower(Invoice.invoice_number).like(term),
            func.lower(Customer.name).like(term),
        ))
    if status:
        query = query.filter(Invoice.status == status)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if date_from:
        query = query.filter(Invoice.issue_date >= date_from)
    if date_to:
        query = query.filter(Invoice.issue_date <= date_to)

    total = query.count()
    invoices = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()) \
        .offset((page - 1) * per_page).limit(per_page).all()
    return invoices, total


def _resolve_customer(session, scope: TenantScope, customer_id: int) -> Customer:
    customer = scoped_query(session, Customer, scope).filter(Customer.id == customer_id).first()
    if customer is None:
        raise ValidationError([{'field': 'customer_id', 'message': 'Customer not found'}])
    return customer


def _resolve_template_id(session, tenant: Tenant, template_id):
    if template_id is None:
        return tenant.default_template_id
    template = session.query(Template).filter(Template.id == template_id, Template.active.is_(True)).first()
    if template is None:
        raise ValidationError([{'field': 'template_id', 'message': 'Template not found'}])
    return template.id


def _resolve_taxes(session, scope: TenantScope, tax_ids):
    """``None`` means the tenant default (if any); a list means exactly those taxes."""
    if tax_ids is None:
        default = get_default_tax(session, scope)
        return [default] if default else []

    unique_ids = list(dict.fromkeys(tax_ids))
    taxes = scoped_query(session, Tax, scope).filter(Tax.id.in_(unique_ids)).all() if unique_ids else []
    if len(taxes) != len(unique_ids):
        raise ValidationError([{'field': 'tax_ids', 'message': 'Tax not found'}])
    by_id = {tax.id: tax for tax in taxes}
    return [by_id[tax_id] for tax_id in unique_ids]


def _apply_lines(invoice: Invoice, items, taxes):
    """Rebuild items and taxes on ``invoice`` and recompute every amount server-side."""
    invoice.items = []
    invoice.taxes = []

    subtotal = Decimal('0.00')
    for position, item in enumerate(items):
        quantity = Decimal(str(item['quantity']))
        unit_price = lifecycle.to_money(item['unit_price'])
        amount = lifecycle.to_money(quantity * unit_price)
        subtotal += amount
        invoice.items.append(InvoiceItem(
            position=position,
            description=item['description'],
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
        ))

    tax_total = Decimal('0.00')
    for tax in taxes:
        amount = lifecycle.to_money(subtotal * Decimal(tax.rate) / 100)
        tax_total += amount
        invoice.taxes.append(InvoiceTax(tax_id=tax.id, name=tax.name, rate=tax.rate, amount=amount))

    invoice.subtotal = subtotal
    invoice.tax_amount = tax_total
    invoice.total = subtotal + tax_total


def _ensure_number_free(session, scope: TenantScope, number: str, exclude_id=None):
    query = scoped_query(session, Invoice, scope).filter(Invoice.invoice_number == number)
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    if query.first() is not None:
        raise ValidationError([{'field': 'invoice_number', 'message': 'Invoice number already exists'}])


def create_invoice(session, scope: TenantScope, data: dict) -> Invoice:
    """
    Create a DRAFT invoice with its line items.

    Totals are always computed here; clients never send them. When no
    invoice number is given one is allocated in the same transaction.
    """
    tenant = session.query(Tenant).filter(Tenant.id == scope.tenant_id).one()
    customer = _resolve_customer(session, scope, data['customer_id'])
    taxes = _resolve_taxes(session, scope, data.get('tax_ids'))

    number = data.get('invoice_number')
    if number:
        _ensure_number_free(session, scope, number)
    else:
        number = allocate_invoice_number(session, scope, commit=False)

    invoice = Invoice(
        tenant_id=scope.tenant_id,
        customer_id=customer.id,
        invoice_number=number,
        status=InvoiceStatus.DRAFT,
        currency=data.get('currency') or tenant.currency,
        issue_date=data.get('issue_date') or date.today(),
        due_date=data.get('due_date'),
        template_id=_resolve_template_id(session, tenant, data.get('template_id')),
        notes=data.get('notes'),
        terms=data.get('terms'),
        amount_paid=Decimal('0.00'),
        created_by=scope.user_id,
    )
    _apply_lines(invoice, data['items'], taxes)
    session.add(invoice)

    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise ValidationError([{'field': 'invoice_number', 'message': 'Invoice number already exists'}])

    log_scoped_action(session, scope, AuditAction.INVOICE_CREATED, 'INVOICE', invoice.id, {
        'invoice_number': invoice.invoice_number,
        'total': invoice.total,
        'customer_id': customer.id,
    })
    session.commit()
    logger.info(f"Invoice {invoice.invoice_number} created for tenant {scope.tenant_id}")
    return invoice


def update_invoice(session, scope: TenantScope, invoice_id: int, data: dict) -> Invoice:
    """
    Edit an unpaid invoice.

    Raises:
        InvalidTransition: invoice is PAID
        BusinessLogicError: new total would be below what was already paid
    """
    invoice = lifecycle.get_invoice(session, scope, invoice_id, for_update=True)
    lifecycle.ensure_editable(invoice)

    if 'customer_id' in data and data['customer_id'] is not None:
        invoice.customer_id = _resolve_customer(session, scope, data['customer_id']).id
    if data.get('invoice_number') and data['invoice_number'] != invoice.invoice_number:
        _ensure_number_free(session, scope, data['invoice_number'], exclude_id=invoice.id)
        invoice.invoice_number = data['invoice_number']
    if 'template_id' in data and data['template_id'] is not None:
        invoice.template_id = _resolve_template_id(session, invoice.tenant, data['template_id'])

    for key in ('issue_date', 'due_date', 'currency', 'notes', 'terms'):
        if key in data:
            setattr(invoice, key, data[key])
    if invoice.issue_date is None:
        raise ValidationError([{'field': 'issue_date', 'message': 'Issue date is required'}])
    if invoice.due_date and invoice.due_date < invoice.issue_date:
        raise ValidationError([{'field': 'due_date', 'message': 'Due date cannot be before the issue date'}])

    if data.get('items') is not None or 'tax_ids' in data:
        items = data.get('items')
        if items is None:
            items = [item.to_dict() for item in invoice.items]
        if 'tax_ids' in data:
            taxes = _resolve_taxes(session, scope, data['tax_ids'])
        else:
            taxes = scoped_query(session, Tax, scope).filter(
                Tax.id.in_([t.tax_id for t in invoice.taxes if t.tax_id])
            ).all()
        _apply_lines(invoice, items, taxes)

        if lifecycle.to_money(invoice.total) < lifecycle.to_money(invoice.amount_paid):
            session.rollback()
            raise BusinessLogicError("Invoice total cannot be less than the amount already paid", status_code=409)

    log_scoped_action(session, scope, AuditAction.INVOICE_UPDATED, 'INVOICE', invoice.id,
                      {'fields': sorted(data.keys())})
    session.commit()
    return invoice


def delete_invoice(session, scope: TenantScope, invoice_id: int):
    """
    Raises:
        InvalidTransition: invoice is PAID
        BusinessLogicError: invoice has recorded payments
    """
    invoice = lifecycle.get_invoice(session, scope, invoice_id, for_update=True)
    lifecycle.ensure_editable(invoice)
    if lifecycle.to_money(invoice.amount_paid) > 0:
        raise BusinessLogicError("Invoices with recorded payments cannot be deleted", status_code=409)

    number = invoice.invoice_number
    session.delete(invoice)
    log_scoped_action(session, scope, AuditAction.INVOICE_DELETED, 'INVOICE', invoice_id,
                      {'invoice_number': number})
    session.commit()


def send_invoice(session, scope: TenantScope, invoice_id: int, data: dict) -> dict:
    """
    Deliver the invoice link by email or SMS and record the send.

    ``to`` defaults to the customer's email or phone. Delivery failure
    leaves the invoice untouched.
    """
    invoice = lifecycle.get_invoice(session, scope, invoice_id)
    customer = invoice.customer
    tenant = invoice.tenant
    method = data.get('method', 'email')

    recipient = data.get('to') or (customer.email if method == 'email' else customer.phone)
    if not recipient:
        field = 'email' if method == 'email' else 'phone number'
        raise ValidationError([{'field': 'to', 'message': f'Customer has no {field}; provide a recipient'}])

    view_link = public_invoice_link(invoice.id)
    amount = format_amount(invoice.balance_due if invoice.amount_paid else invoice.total, invoice.currency)

    if method == 'sms':
        delivered = send_sms(recipient, build_invoice_sms(
            customer.name, invoice.invoice_number, amount, tenant.company_name, view_link
        ))
    else:
        delivered = send_invoice_email(
            recipient, customer.name, invoice.invoice_number, amount, tenant.company_name, view_link,
            subject=data.get('subject'), message=data.get('message'),
        )

    if not delivered:
        raise BusinessLogicError(f"Invoice could not be sent by {method}. Please try again.", status_code=502)

    status_changed = lifecycle.mark_sent(invoice)
    log_scoped_action(session, scope, AuditAction.INVOICE_SENT, 'INVOICE', invoice.id, {
        'method': method,
        'sent_to': recipient,
        'status_changed': status_changed,
    })
    session.commit()
    return {'invoice': invoice, 'method': method, 'sent_to': recipient}


def view_public_invoice(session, invoice_id: int) -> dict:
    """
    Unauthenticated read by id, used by the link sent to customers.

    Tracks the view (SENT -> VIEWED, ``viewed_at`` set once) and returns
    the invoice with tenant and customer display data.
    """
    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if invoice is None:
        raise NotFoundError("Invoice not found")

    if lifecycle.record_public_view(session, invoice):
        log_action(
            session, AuditAction.INVOICE_VIEWED,
            actor_id=None, tenant_id=invoice.tenant_id,
            entity_type='INVOICE', entity_id=invoice.id,
            details={'invoice_number': invoice.invoice_number}
        )
    session.commit()

    tenant = invoice.tenant
    customer = invoice.customer
    data = invoice.to_dict()
    data['tenant'] = {
        'company_name': tenant.company_name,
        'email': tenant.email,
        'phone': tenant.phone,
        'address': tenant.address,
    }
    data['customer'] = {
        'name': customer.name,
        'email': customer.email,
        'phone': customer.phone,
        'company': customer.company,
        'address': customer.address,
        'city': customer.city,
        'state': customer.state,
        'country': customer.country,
        'postal_code': customer.postal_code,
    }
    data['template'] = invoice.template.to_dict() if invoice.template else None
    return data
