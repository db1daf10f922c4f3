# connectchain_admin/api/suppliers.py
from flask import Blueprint, jsonify, request

from connectchain_admin.api.request_parsing import get_payload
from connectchain_admin.db import get_session
from connectchain_admin.services import SupplierService

suppliers_bp = Blueprint('suppliers', __name__, url_prefix='/api/suppliers')


@suppliers_bp.route('', methods=['GET'])
def list_suppliers():
    result = SupplierService(get_session()).list_suppliers(request.args)
    return jsonify({
        'success': True,
        'message': 'Suppliers retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@suppliers_bp.route('/<supplier_id>', methods=['GET'])
def get_supplier(supplier_id):
    return jsonify({
        'success': True,
        'message': 'Supplier retrieved successfully',
        'data': SupplierService(get_session()).get_supplier(supplier_id)
    })


@suppliers_bp.route('/<supplier_id>/products', methods=['GET'])
def get_supplier_products(supplier_id):
    result = SupplierService(get_session()).get_supplier_products(supplier_id, request.args)
    return jsonify({
        'success': True,
        'message': 'Supplier products retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@suppliers_bp.route('/<supplier_id>/verification-status', methods=['PATCH'])
def update_verification_status(supplier_id):
    status = get_payload().get('verificationStatus')
    supplier = SupplierService(get_session()).update_verification_status(supplier_id, status)
    return jsonify({
        'success': True,
        'message': f"Supplier verification status updated to {status}",
        'data': supplier
    })


@suppliers_bp.route('/<supplier_id>/ban', methods=['PATCH'])
def ban_supplier(supplier_id):
    return jsonify({
        'success': True,
        'message': 'Supplier banned successfully',
        'data': SupplierService(get_session()).ban_supplier(supplier_id)
    })


@suppliers_bp.route('/<supplier_id>/unban', methods=['PATCH'])
def unban_supplier(supplier_id):
    return jsonify({
        'success': True,
        'message': 'Supplier unbanned successfully',
        'data': SupplierService(get_session()).unban_supplier(supplier_id)
    })
