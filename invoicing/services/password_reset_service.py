"""
Password reset token workflow.

Only the SHA-256 digest of a token is stored. The raw token leaves the
process once, inside the emailed link, and is never logged.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from flask import current_app

from invoicing.exceptions import InvalidOrExpiredToken, ValidationError
from invoicing.models import User, AuditAction
from invoicing.models.user import hash_password
from invoicing.schemas.auth import password_min_length
from invoicing.services.audit_service import log_action
from invoicing.services.email_service import send_password_reset_email

logger = logging.getLogger(__name__)

RESET_ACK_MESSAGE = "If an account exists with that email, a reset link has been sent."

TOKEN_BYTES = 32  # 256 bits


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def validate_password(password: str):
    min_length = password_min_length()
    if not password or len(password) < min_length:
        raise ValidationError([{
            'field': 'password',
            'message': f'Password must be at least {min_length} characters'
        }])


def build_reset_link(token: str) -> str:
    return f"{current_app.config['APP_BASE_URL']}/reset-password?token={token}"


def request_password_reset(session, email: str, now: datetime = None) -> dict:
    """
    Issue a reset token for ``email`` if an account exists.

    The returned acknowledgement is identical whether or not it does.
    Issuing a token overwrites any pending one.
    """
    ack = {'message': RESET_ACK_MESSAGE}
    normalized = (email or '').strip().lower()

    user = session.query(User).filter(User.email == normalized, User.active.is_(True)).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return ack

    now = now or datetime.utcnow()
    token = secrets.token_hex(TOKEN_BYTES)
    user.reset_token_hash = hash_token(token)
    user.reset_token_expiry = now + timedelta(seconds=current_app.config['PASSWORD_RESET_TOKEN_TTL'])
    log_action(
        session, AuditAction.PASSWORD_RESET_REQUESTED,
        actor_id=user.id, tenant_id=user.tenant_id,
        entity_type='USER', entity_id=user.id
    )
    session.commit()

    if not send_password_reset_email(user.email, user.full_name, build_reset_link(token)):
        logger.error(f"Password reset email could not be delivered to user {user.id}")

    logger.info(f"Password reset token issued for user {user.id}")
    return ack


def perform_password_reset(session, token: str, new_password: str, now: datetime = None) -> User:
    """
    Consume ``token`` and set ``new_password``.

    The token is cleared with a conditional UPDATE that still requires the
    stored hash to match, so of two concurrent requests with the same token
    only one succeeds.

    Raises:
        ValidationError: password too short
        InvalidOrExpiredToken: token unknown, already used or expired
    """
    validate_password(new_password)

    if not token:
        raise InvalidOrExpiredToken()

    now = now or datetime.utcnow()
    token_hash = hash_token(token)

    user = session.query(User).filter(
        User.reset_token_hash == token_hash,
        User.reset_token_expiry > now
    ).first()
    if user is None:
        raise InvalidOrExpiredToken()

    consumed = session.query(User).filter(
        User.id == user.id,
        User.reset_token_hash == token_hash,
        User.reset_token_expiry > now
    ).update({
        User.password_hash: hash_password(new_password),
        User.reset_token_hash: None,
        User.reset_token_expiry: None,
    }, synchronize_session=False)

    if consumed != 1:
        session.rollback()
        raise InvalidOrExpiredToken()

    log_action(
        session, AuditAction.PASSWORD_RESET,
        actor_id=user.id, tenant_id=user.tenant_id,
        entity_type='USER', entity_id=user.id,
        details={'email': user.email, 'reset_at': now.isoformat()}
    )
    session.commit()
    session.refresh(user)

    logger.info(f"Password reset completed for user {user.id}")
    return user
