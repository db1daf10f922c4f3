# connectchain_admin/api/users.py
"""Routes for customer accounts, served under /api/users."""
from flask import Blueprint, jsonify, request

from connectchain_admin.api.request_parsing import get_payload
from connectchain_admin.db import get_session
from connectchain_admin.services import CustomerService

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('', methods=['GET'])
def list_customers():
    result = CustomerService(get_session()).list_customers(request.args)
    return jsonify({
        'success': True,
        'message': 'Customers retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@users_bp.route('/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    return jsonify({
        'success': True,
        'message': 'Customer retrieved successfully',
        'data': CustomerService(get_session()).get_customer(customer_id)
    })


@users_bp.route('/<customer_id>', methods=['PUT'])
def update_customer(customer_id):
    return jsonify({
        'success': True,
        'message': 'Customer updated successfully',
        'data': CustomerService(get_session()).update_customer(customer_id, get_payload())
    })


@users_bp.route('/<customer_id>/status', methods=['PATCH'])
def update_customer_status(customer_id):
    status = get_payload().get('status')
    customer = CustomerService(get_session()).update_customer_status(customer_id, status)
    return jsonify({
        'success': True,
        'message': f"Customer status updated to {status}",
        'data': customer
    })
