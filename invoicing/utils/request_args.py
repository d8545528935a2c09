"""Query-string helpers for list endpoints."""
import enum
from datetime import date
from typing import Optional, Tuple

from flask import current_app, request

from invoicing.exceptions import ValidationError


def page_args() -> Tuple[int, int]:
    """``(page, per_page)`` from ``?page=&limit=``, clamped to sane bounds."""
    default_size = current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    max_size = current_app.config.get('MAX_PAGE_SIZE', 100)
    page = request.args.get('page', 1, type=int) or 1
    per_page = request.args.get('limit', default_size, type=int) or default_size
    return max(page, 1), min(max(per_page, 1), max_size)


def date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError([{'field': name, 'message': f'{name} must be a date (YYYY-MM-DD)'}])


def enum_arg(name: str, enum_cls) -> Optional[enum.Enum]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw.upper())
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError([{'field': name, 'message': f'{name} must be one of: {allowed}'}])


def paginated(items, total: int, page: int, per_page: int, key: str) -> dict:
    return {
        key: [item.to_dict() if hasattr(item, 'to_dict') else item for item in items],
        'pagination': {
            'page': page,
            'limit': per_page,
            'total': total,
            'pages': (total + per_page - 1) // per_page,
        },
    }
