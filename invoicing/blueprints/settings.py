"""Company settings and invoice template selection."""
from flask import Blueprint, g, jsonify

from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission
from invoicing.middleware import current_scope, require_login, require_tenant
from invoicing.schemas.base import parse_payload
from invoicing.schemas.settings import SettingsUpdate, TemplateSelect
from invoicing.services import account_service

settings_bp = Blueprint('settings', __name__, url_prefix='/api')


@settings_bp.route('/settings', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_SETTINGS)
def get_settings():
    tenant = g.tenant
    return jsonify({
        'tenant': tenant.to_dict(),
        'default_template': tenant.default_template.to_dict() if tenant.default_template else None,
    })


@settings_bp.route('/settings', methods=['PATCH'])
@require_tenant
@require_permission(Permission.MANAGE_SETTINGS)
def update_settings():
    data = parse_payload(SettingsUpdate)
    tenant = account_service.update_settings(get_session(), current_scope(), data.model_dump(exclude_unset=True))
    return jsonify({'tenant': tenant.to_dict()})


@settings_bp.route('/templates', methods=['GET'])
@require_login
def list_templates():
    templates = account_service.list_templates(get_session())
    return jsonify({'templates': [template.to_dict() for template in templates]})


@settings_bp.route('/settings/template', methods=['PUT'])
@require_tenant
@require_permission(Permission.MANAGE_SETTINGS)
def select_template():
    data = parse_payload(TemplateSelect)
    tenant = account_service.set_default_template(get_session(), current_scope(), data.template_id)
    return jsonify({'tenant': tenant.to_dict()})
