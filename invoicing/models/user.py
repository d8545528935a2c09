"""User model - platform accounts with email/password authentication."""
import enum

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from invoicing.database import Base, IdType


def hash_password(password):
    """Salted scrypt hash, the same format set_password stores."""
    return generate_password_hash(password, method='scrypt')


class UserRole(enum.Enum):
    """Closed set of roles. Capabilities live in decorators.permissions."""
    SUPER_ADMIN = "SUPER_ADMIN"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class User(Base):
    """
    Platform user.

    ``tenant_id`` stays NULL until onboarding creates the company. The
    reset token columns only ever hold a SHA-256 digest, never the raw token.
    """

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.OWNER)
    active = Column(Boolean, nullable=False, default=True)
    tenant_id = Column(IdType, ForeignKey('tenant.id'), nullable=True, index=True)

    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expiry = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant', back_populates='users')

    @validates('email')
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = hash_password(password)

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_super_admin(self):
        return self.role == UserRole.SUPER_ADMIN

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role.value,
            'tenant_id': self.tenant_id,
            'active': self.active,
        }

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
