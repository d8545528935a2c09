"""Invoice template catalogue."""
from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


# Built-in catalogue inserted by `flask seed-templates`
BUILTIN_TEMPLATES = [
    {'slug': 'classic', 'name': 'Classic', 'description': 'Plain layout with a bordered items table.', 'is_default': True},
    {'slug': 'modern', 'name': 'Modern', 'description': 'Colored header band and large totals.', 'is_default': False},
    {'slug': 'minimal', 'name': 'Minimal', 'description': 'Monochrome, no borders.', 'is_default': False},
]


class Template(Base):
    __tablename__ = 'template'

    id = Column(IdType, primary_key=True, autoincrement=True)
    slug = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'description': self.description,
            'is_default': self.is_default,
        }

    def __repr__(self):
        return f"<Template(id={self.id}, slug='{self.slug}')>"
