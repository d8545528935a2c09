"""Customers blueprint - tenant-scoped JSON API."""
from flask import Blueprint, jsonify, request

from invoicing.database import get_session
from invoicing.decorators.permissions import Permission, require_permission
from invoicing.middleware import current_scope, require_tenant
from invoicing.schemas.base import parse_payload
from invoicing.schemas.settings import CustomerCreate, CustomerUpdate
from invoicing.services import customer_service
from invoicing.utils.request_args import page_args, paginated

customers_bp = Blueprint('customers', __name__, url_prefix='/api/customers')


@customers_bp.route('', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_CUSTOMERS)
def list_customers():
    page, per_page = page_args()
    customers, total = customer_service.list_customers(
        get_session(), current_scope(),
        search=request.args.get('search', '').strip() or None,
        page=page, per_page=per_page,
    )
    return jsonify(paginated(customers, total, page, per_page, 'customers'))


@customers_bp.route('', methods=['POST'])
@require_tenant
@require_permission(Permission.MANAGE_CUSTOMERS)
def create_customer():
    data = parse_payload(CustomerCreate)
    customer = customer_service.create_customer(get_session(), current_scope(), data.model_dump())
    return jsonify({'customer': customer.to_dict()}), 201


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_tenant
@require_permission(Permission.VIEW_CUSTOMERS)
def get_customer(customer_id):
    customer = customer_service.get_customer(get_session(), current_scope(), customer_id)
    return jsonify({'customer': customer.to_dict()})


@customers_bp.route('/<int:customer_id>', methods=['PATCH'])
@require_tenant
@require_permission(Permission.MANAGE_CUSTOMERS)
def update_customer(customer_id):
    data = parse_payload(CustomerUpdate)
    customer = customer_service.update_customer(
        get_session(), current_scope(), customer_id, data.model_dump(exclude_unset=True)
    )
    return jsonify({'customer': customer.to_dict()})


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_tenant
@require_permission(Permission.MANAGE_CUSTOMERS)
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), current_scope(), customer_id)
    return jsonify({'message': 'Customer deleted'})
