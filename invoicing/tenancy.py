"""
Tenant scope tokens.

Every tenant-owned read or write goes through a ``TenantScope``. Services
never accept a bare tenant id, and scopes can only be minted here: by the
request guard for an authenticated user of an ACTIVE tenant, or by
``system_scope`` for flows that resolved the tenant from a trusted record
(public invoice link, payment webhook).
"""
from dataclasses import dataclass, field
from typing import Optional

from invoicing.exceptions import AccessDenied
from invoicing.models import TenantStatus, UserRole

_ISSUER = object()


@dataclass(frozen=True)
class TenantScope:
    tenant_id: int
    user_id: Optional[int]
    role: Optional[UserRole]
    _issuer: object = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._issuer is not _ISSUER:
            raise TypeError("TenantScope must be obtained from issue_scope() or system_scope()")

    @property
    def is_system(self):
        return self.user_id is None


def issue_scope(user, tenant) -> TenantScope:
    """
    Mint a scope for ``user`` acting inside ``tenant``.

    Raises:
        AccessDenied: onboarding not finished, user not a member, or tenant not ACTIVE
    """
    if tenant is None:
        raise AccessDenied("Please complete onboarding to create your company")
    if user.tenant_id != tenant.id:
        raise AccessDenied("You do not belong to this company")
    if tenant.status != TenantStatus.ACTIVE:
        raise AccessDenied("Your company account has been suspended. Please contact support.")
    return TenantScope(tenant_id=tenant.id, user_id=user.id, role=user.role, _issuer=_ISSUER)


def system_scope(tenant_id: int) -> TenantScope:
    """Scope for unauthenticated flows acting on behalf of the platform."""
    return TenantScope(tenant_id=tenant_id, user_id=None, role=None, _issuer=_ISSUER)


def scoped_query(session, model, scope: TenantScope):
    """``session.query(model)`` already filtered to the scope's tenant."""
    if not isinstance(scope, TenantScope):
        raise TypeError("scoped_query requires a TenantScope")
    return session.query(model).filter(model.tenant_id == scope.tenant_id)
