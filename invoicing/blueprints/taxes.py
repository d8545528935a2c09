"""Taxes blueprint - tenant-scoped JSON API."""
from flask import Blueprint, jsonify

from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission
from invoicing.middleware import current_scope, require_tenant
from invoicing.schemas.base import parse_payload
from invoicing.schemas.settings import TaxCreate, TaxUpdate
from invoicing.services import tax_service

taxes_bp = Blueprint('taxes', __name__, url_prefix='/api/taxes')


@taxes_bp.route('', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_TAXES)
def list_taxes():
    taxes = tax_service.list_taxes(get_session(), current_scope())
    return jsonify({'taxes': [tax.to_dict() for tax in taxes]})


@taxes_bp.route('', methods=['POST'])
@require_tenant
@require_permission(Permission.MANAGE_TAXES)
def create_tax():
    data = parse_payload(TaxCreate)
    tax = tax_service.create_tax(get_session(), current_scope(), data.model_dump())
    return jsonify({'tax': tax.to_dict()}), 201


@taxes_bp.route('/<int:tax_id>', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_TAXES)
def get_tax(tax_id):
    return jsonify({'tax': tax_service.get_tax(get_session(), current_scope(), tax_id).to_dict()})


@taxes_bp.route('/<int:tax_id>', methods=['PATCH'])
@require_tenant
@require_permission(Permission.MANAGE_TAXES)
def update_tax(tax_id):
    data = parse_payload(TaxUpdate)
    tax = tax_service.update_tax(get_session(), current_scope(), tax_id, data.model_dump(exclude_unset=True))
    return jsonify({'tax': tax.to_dict()})


@taxes_bp.route('/<int:tax_id>', methods=['DELETE'])
@require_tenant
@require_permission(Permission.MANAGE_TAXES)
def delete_tax(tax_id):
    tax_service.delete_tax(get_session(), current_scope(), tax_id)
    return jsonify({'message': 'Tax deleted'})
