"""Customer service - tenant-scoped CRUD."""
from sqlalchemy import or_, func

from invoicing.exceptions import BusinessLogicError, NotFoundError
from invoicing.models import Customer, Invoice
from invoicing.tenancy import TenantScope, scoped_query


def list_customers(session, scope: TenantScope, search: str = None, page: int = 1, per_page: int = 20):
    """
    Page through the tenant's customers, alphabetically.

    Returns:
        (customers, total)
    """
    query = scoped_query(session, Customer, scope)
    if search:
        term = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(Customer.name).like(term),
            func.lower(Customer.email).like(term),
            func.lower(Customer.company).like(term),
            Customer.phone.like(term),
        ))

    total = query.count()
    customers = query.order_by(Customer.name.asc(), Customer.id.asc()) \
        .offset((page - 1) * per_page).limit(per_page).all()
    return customers, total


def get_customer(session, scope: TenantScope, customer_id: int) -> Customer:
    customer = scoped_query(session, Customer, scope).filter(Customer.id == customer_id).first()
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(session, scope: TenantScope, data: dict) -> Customer:
    customer = Customer(tenant_id=scope.tenant_id, **data)
    session.add(customer)
    session.commit()
    return customer


def update_customer(session, scope: TenantScope, customer_id: int, data: dict) -> Customer:
    customer = get_customer(session, scope, customer_id)
    for key, value in data.items():
        setattr(customer, key, value)
    session.commit()
    return customer


def delete_customer(session, scope: TenantScope, customer_id: int):
    """
    Raises:
        NotFoundError: no such customer in this tenant
        BusinessLogicError: customer still has invoices
    """
    customer = get_customer(session, scope, customer_id)
    in_use = scoped_query(session, Invoice, scope).filter(Invoice.customer_id == customer.id).first()
    if in_use is not None:
        raise BusinessLogicError("Customer has invoices and cannot be deleted", status_code=409)
    session.delete(customer)
    session.commit()
