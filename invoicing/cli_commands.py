"""
Flask CLI commands for operating the platform.

Commands:
- flask init-db: Create the schema
- flask seed-templates: Insert the built-in invoice templates
- flask create-super-admin: Create a platform administrator
- flask create-user: Create a user, optionally inside a tenant
"""
import click
from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import SQLAlchemyError

from invoicing.database import create_all, get_session
from invoicing.models import BUILTIN_TEMPLATES, Template, Tenant, User, UserRole
from invoicing.schemas.auth import password_min_length


def seed_templates(session) -> int:
    """Insert missing built-in templates. Returns how many were added."""
    existing = {slug for (slug,) in session.query(Template.slug).all()}
    added = 0
    for entry in BUILTIN_TEMPLATES:
        if entry['slug'] in existing:
            continue
        session.add(Template(**entry))
        added += 1
    session.commit()
    return added


def _create_user(email, password, full_name, role, tenant_id=None):
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise click.BadParameter(str(e), param_hint='--email')

    min_length = password_min_length()
    if len(password) < min_length:
        raise click.BadParameter(f'Password must be at least {min_length} characters', param_hint='--password')

    session = get_session()
    if session.query(User).filter_by(email=email.lower()).first():
        raise click.ClickException(f'A user with email {email} already exists')
    if tenant_id is not None and session.get(Tenant, tenant_id) is None:
        raise click.ClickException(f'Tenant {tenant_id} not found')

    user = User(email=email, full_name=full_name, role=role, tenant_id=tenant_id)
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise click.ClickException(f'Could not create user: {e}')
    return user


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables and seed the template catalogue."""
        create_all()
        added = seed_templates(get_session())
        click.echo(click.style(f'Database initialised ({added} templates added)', fg='green'))

    @app.cli.command('seed-templates')
    def seed_templates_command():
        """Insert the built-in invoice templates."""
        added = seed_templates(get_session())
        click.echo(f'{added} templates added')

    @app.cli.command('create-super-admin')
    @click.option('--email', prompt=True, help='Admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--name', 'full_name', default=None, help='Display name')
    def create_super_admin(email, password, full_name):
        """Create a platform administrator (no tenant)."""
        user = _create_user(email, password, full_name, UserRole.SUPER_ADMIN)
        click.echo(click.style(f'Super admin created: {user.email} (id {user.id})', fg='green', bold=True))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='User email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='User password')
    @click.option('--name', 'full_name', default=None, help='Display name')
    @click.option('--role', type=click.Choice([r.value for r in UserRole if r != UserRole.SUPER_ADMIN]),
                  default=UserRole.STAFF.value, show_default=True)
    @click.option('--tenant-id', type=int, default=None, help='Tenant the user belongs to')
    def create_user(email, password, full_name, role, tenant_id):
        """Create a tenant user."""
        user = _create_user(email, password, full_name, UserRole(role), tenant_id)
        click.echo(click.style(f'User created: {user.email} (id {user.id}, role {role})', fg='green'))
