"""
Audit logging service for tracking sensitive state changes.

Writes are best-effort: each entry goes into its own SAVEPOINT so a failed
audit insert never rolls back or fails the operation that triggered it.
"""
from invoicing.models.audit_log import AuditLog, AuditAction
from invoicing.tenancy import TenantScope
from flask import request, has_request_context
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def _request_metadata():
    if not has_request_context():
        return None, None
    ip_address = request.headers.get('X-Forwarded-For', request.remote_addr or '').split(',')[0].strip() or None
    user_agent = (request.headers.get('User-Agent') or '')[:255] or None
    return ip_address, user_agent


def log_action(
    session,
    action: AuditAction,
    *,
    actor_id: int = None,
    tenant_id: int = None,
    entity_type: str = None,
    entity_id=None,
    details: dict = None
) -> bool:
    """
    Append an audit entry.

    Args:
        session: Database session
        action: AuditAction enum value
        actor_id: User performing the action (None for system actors)
        tenant_id: Tenant affected (None for platform-level actions)
        entity_type: Type of entity affected (e.g., 'INVOICE', 'USER')
        entity_id: ID of the affected entity
        details: Dict with additional details (JSON encoded)

    Returns:
        True if the entry was written. Failures are logged, never raised.
        The caller still owns the outer commit.

    Raises:
        SQLAlchemyError: the caller's own pending changes failed to flush
    """
    # Flush the caller's changes outside the guard so their errors keep their cause
    session.flush()

    try:
        details_json = json.dumps(details, default=str) if details else None
        ip_address, user_agent = _request_metadata()

        with session.begin_nested():
            session.add(AuditLog(
                tenant_id=tenant_id,
                user_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                details=details_json,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=datetime.utcnow()
            ))

        logger.info(f"Audit log created: {action.value} by user {actor_id} on {entity_type} {entity_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to create audit log {action}: {e}", exc_info=True)
        return False


def log_scoped_action(session, scope: TenantScope, action: AuditAction, entity_type=None, entity_id=None, details=None):
    """``log_action`` with actor and tenant taken from a scope."""
    return log_action(
        session, action,
        actor_id=scope.user_id,
        tenant_id=scope.tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details
    )


def get_audit_logs(
    session,
    scope: TenantScope = None,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    user_id_filter: int = None,
    entity_type_filter: str = None,
    entity_id_filter=None
):
    """
    Retrieve audit entries, newest first.

    With a scope, only that tenant's entries are visible. Without one
    (platform review) every entry is eligible.
    """
    query = session.query(AuditLog)

    if scope is not None:
        query = query.filter(AuditLog.tenant_id == scope.tenant_id)

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if user_id_filter:
        query = query.filter(AuditLog.user_id == user_id_filter)

    if entity_type_filter:
        query = query.filter(AuditLog.entity_type == entity_type_filter)

    if entity_id_filter is not None:
        query = query.filter(AuditLog.entity_id == str(entity_id_filter))

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return query.limit(limit).offset(offset).all()
