"""
Account service: registration, login and company onboarding.
"""
import logging
import re
import uuid

from sqlalchemy.exc import IntegrityError

from invoicing.exceptions import AccessDenied, BusinessLogicError, Unauthorized, ValidationError
from invoicing.models import AuditAction, Template, Tenant, TenantStatus, User, UserRole
from invoicing.services.audit_service import log_action

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')
    return slug[:60] or 'company'


def register_user(session, email: str, password: str, full_name: str) -> User:
    """
    Create an OWNER account without a tenant; onboarding attaches one.

    Raises:
        BusinessLogicError: email already registered
    """
    email = email.strip().lower()
    if session.query(User.id).filter(User.email == email).first() is not None:
        raise BusinessLogicError("An account with this email already exists", status_code=409)

    user = User(email=email, full_name=full_name, role=UserRole.OWNER, active=True)
    user.set_password(password)
    session.add(user)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError("An account with this email already exists", status_code=409)

    log_action(session, AuditAction.USER_REGISTERED, actor_id=user.id, entity_type='USER', entity_id=user.id)
    session.commit()
    logger.info(f"User {user.id} registered")
    return user


def authenticate(session, email: str, password: str) -> User:
    """
    Raises:
        Unauthorized: unknown email, wrong password or inactive account (same message)
    """
    user = session.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not user.active or not user.check_password(password):
        raise Unauthorized("Invalid email or password")
    return user


def complete_onboarding(session, user: User, data: dict, default_currency: str = 'NGN') -> Tenant:
    """
    Create the user's company and make the user its OWNER.

    Raises:
        BusinessLogicError: onboarding already done
        AccessDenied: super admins do not own tenants
    """
    if user.is_super_admin:
        raise AccessDenied("Platform administrators cannot create companies")
    if user.tenant_id is not None:
        raise BusinessLogicError("Onboarding already completed", status_code=409)

    default_template = session.query(Template).filter(
        Template.is_default.is_(True), Template.active.is_(True)
    ).first()

    tenant = Tenant(
        slug=f"{slugify(data['company_name'])}-{uuid.uuid4().hex[:6]}",
        company_name=data['company_name'],
        email=data.get('email') or user.email,
        phone=data.get('phone'),
        address=data.get('address'),
        currency=data.get('currency') or default_currency,
        status=TenantStatus.ACTIVE,
        default_template_id=default_template.id if default_template else None,
    )
    session.add(tenant)
    session.flush()

    user.tenant_id = tenant.id
    user.role = UserRole.OWNER

    log_action(session, AuditAction.TENANT_CREATED, actor_id=user.id, tenant_id=tenant.id,
               entity_type='TENANT', entity_id=tenant.id, details={'company_name': tenant.company_name})
    session.commit()
    logger.info(f"Tenant {tenant.id} created by user {user.id}")
    return tenant


def update_settings(session, scope, data: dict) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == scope.tenant_id).one()
    for key, value in data.items():
        setattr(tenant, key, value)
    log_action(session, AuditAction.SETTINGS_CHANGED, actor_id=scope.user_id, tenant_id=tenant.id,
               entity_type='TENANT', entity_id=tenant.id, details=data)
    session.commit()
    return tenant


def set_default_template(session, scope, template_id: int) -> Tenant:
    template = session.query(Template).filter(Template.id == template_id, Template.active.is_(True)).first()
    if template is None:
        raise ValidationError([{'field': 'template_id', 'message': 'Template not found'}])

    tenant = session.query(Tenant).filter(Tenant.id == scope.tenant_id).one()
    tenant.default_template_id = template.id
    log_action(session, AuditAction.SETTINGS_CHANGED, actor_id=scope.user_id, tenant_id=tenant.id,
               entity_type='TENANT', entity_id=tenant.id, details={'default_template_id': template.id})
    session.commit()
    return tenant


def list_templates(session):
    return session.query(Template).filter(Template.active.is_(True)) \
        .order_by(Template.is_default.desc(), Template.name.asc()).all()
