"""Request payload parsing shared by the JSON blueprints."""
from flask import request
from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError, field_validator

from invoicing.exceptions import ValidationError


class RequestSchema(BaseModel):
    """Base for request bodies: trims strings and rejects unknown fields."""

    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')


def reject_null(*fields):
    """
    Validator for partial updates: the listed fields may be left out, but an
    explicit ``null`` is refused since their columns are NOT NULL.

    Usage:
        check_not_null = reject_null('name', 'rate')
    """
    def check(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value
    return field_validator(*fields)(check)


def _field_name(loc):
    return '.'.join(str(part) for part in loc) or None


def _clean_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators
    for prefix in ('Value error, ', 'Assertion failed, '):
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


def validate_data(schema, data):
    """
    Validate ``data`` against ``schema``.

    Raises:
        ValidationError: with one entry per violated constraint, in pydantic's order
    """
    try:
        return schema.model_validate(data if data is not None else {})
    except PydanticValidationError as e:
        errors = [
            {'field': _field_name(err['loc']), 'message': _clean_message(err['msg'])}
            for err in e.errors()
        ]
        raise ValidationError(errors) from None


def parse_payload(schema):
    """Validate the current request's JSON body against ``schema``."""
    data = request.get_json(silent=True)
    if data is not None and not isinstance(data, dict):
        raise ValidationError([{'field': None, 'message': 'Request body must be a JSON object'}])
    return validate_data(schema, data)
