# connectchain_admin/api/orders.py
from flask import Blueprint, jsonify, request

from connectchain_admin.api.request_parsing import get_payload
from connectchain_admin.db import get_session
from connectchain_admin.services import OrderService

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['GET'])
def list_orders():
    """Get orders with pagination, search, status and date filtering."""
    result = OrderService(get_session()).list_orders(request.args)
    return jsonify({
        'success': True,
        'message': 'Orders retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@orders_bp.route('/<int:order_id>', methods=['GET'])
def get_order(order_id):
    return jsonify({
        'success': True,
        'message': 'Order retrieved successfully',
        'data': OrderService(get_session()).get_order(order_id)
    })


@orders_bp.route('', methods=['POST'])
def create_order():
    return jsonify({
        'success': True,
        'message': 'Order created successfully',
        'data': OrderService(get_session()).create_order(get_payload())
    }), 201


@orders_bp.route('/<int:order_id>/status', methods=['PUT'])
def update_order_status(order_id):
    payload = get_payload()
    order = OrderService(get_session()).update_order_status(
        order_id, payload.get('status'), payload.get('Notes')
    )
    return jsonify({
        'success': True,
        'message': f"Order status updated to {order['status']}",
        'data': order
    })


@orders_bp.route('/<int:order_id>/approve', methods=['PUT'])
def approve_order(order_id):
    return jsonify({
        'success': True,
        'message': 'Order approved successfully',
        'data': OrderService(get_session()).approve_order(order_id)
    })


@orders_bp.route('/<int:order_id>/reject', methods=['PUT'])
def reject_order(order_id):
    reason = get_payload().get('reason')
    return jsonify({
        'success': True,
        'message': 'Order rejected successfully',
        'data': OrderService(get_session()).reject_order(order_id, reason)
    })


@orders_bp.route('/<int:order_id>/complete', methods=['PUT'])
def complete_order(order_id):
    return jsonify({
        'success': True,
        'message': 'Order completed successfully',
        'data': OrderService(get_session()).complete_order(order_id)
    })
