import os
import uuid
from decimal import Decimal

import pytest

from config import TestConfig
from invoicing import create_app
from invoicing.cli_commands import seed_templates
from invoicing.database import create_all, drop_all, get_session
from invoicing.models import Customer, Tax, Tenant, TenantStatus, User, UserRole
from invoicing.services import invoice_service
from invoicing.tenancy import issue_scope


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application instance for testing (SQLite unless TEST_DATABASE_URL is set)."""
    db_file = tmp_path_factory.mktemp('db') / 'invoicing-test.db'

    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL') or f'sqlite:///{db_file}'

    return create_app(_Config)


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh schema and an application context for every test."""
    with app.app_context():
        create_all()
        yield
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session shared with the request handlers of this thread."""
    return get_session()


@pytest.fixture(scope='function')
def templates(session):
    seed_templates(session)


def _make_tenant(session, name):
    suffix = uuid.uuid4().hex[:8]
    tenant = Tenant(
        slug=f'{name.lower().replace(" ", "-")}-{suffix}',
        company_name=name,
        email=f'billing-{suffix}@example.com',
        currency='NGN',
        status=TenantStatus.ACTIVE,
    )
    session.add(tenant)
    session.commit()
    return tenant


def _make_user(session, tenant=None, role=UserRole.OWNER, password='password123'):
    suffix = uuid.uuid4().hex[:8]
    user = User(
        email=f'user-{suffix}@example.com',
        full_name=f'User {suffix}',
        role=role,
        tenant_id=tenant.id if tenant else None,
        active=True,
    )
    user.set_password(password)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def tenant1(session):
    """Create first test tenant."""
    return _make_tenant(session, 'Acme Ltd')


@pytest.fixture(scope='function')
def tenant2(session):
    """Create second test tenant for isolation tests."""
    return _make_tenant(session, 'Globex Ltd')


@pytest.fixture(scope='function')
def user1(session, tenant1):
    """OWNER of tenant1."""
    return _make_user(session, tenant1)


@pytest.fixture(scope='function')
def user2(session, tenant2):
    """OWNER of tenant2."""
    return _make_user(session, tenant2)


@pytest.fixture(scope='function')
def staff_user(session, tenant1):
    return _make_user(session, tenant1, role=UserRole.STAFF)


@pytest.fixture(scope='function')
def super_admin(session):
    return _make_user(session, role=UserRole.SUPER_ADMIN)


@pytest.fixture(scope='function')
def scope1(user1, tenant1):
    return issue_scope(user1, tenant1)


@pytest.fixture(scope='function')
def scope2(user2, tenant2):
    return issue_scope(user2, tenant2)


@pytest.fixture(scope='function')
def customer1(session, tenant1):
    customer = Customer(
        tenant_id=tenant1.id, name='Ada Obi', email='ada@example.com', phone='+2348012345678'
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def customer2(session, tenant2):
    customer = Customer(tenant_id=tenant2.id, name='Bola Ade', email='bola@example.com')
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def vat1(session, tenant1):
    """7.5% default tax for tenant1."""
    tax = Tax(tenant_id=tenant1.id, name='VAT', rate=Decimal('7.50'), is_default=True)
    session.add(tax)
    session.commit()
    return tax


@pytest.fixture(scope='function')
def invoice1(session, scope1, customer1):
    """DRAFT invoice for tenant1, total 1000.00 and no tax."""
    return invoice_service.create_invoice(session, scope1, {
        'customer_id': customer1.id,
        'tax_ids': [],
        'items': [
            {'description': 'Consulting', 'quantity': Decimal('2'), 'unit_price': Decimal('300.00')},
            {'description': 'Support', 'quantity': Decimal('1'), 'unit_price': Decimal('400.00')},
        ],
    })


@pytest.fixture(scope='function')
def invoice2(session, scope2, customer2):
    """DRAFT invoice for tenant2."""
    return invoice_service.create_invoice(session, scope2, {
        'customer_id': customer2.id,
        'tax_ids': [],
        'items': [{'description': 'Design', 'quantity': Decimal('1'), 'unit_price': Decimal('500.00')}],
    })


@pytest.fixture(scope='function')
def login_as(client):
    """Put ``user`` in the test client's session cookie."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
        return client
    return _login


@pytest.fixture(scope='function')
def authenticated_client(login_as, user1):
    """Client logged in as the OWNER of tenant1."""
    return login_as(user1)
