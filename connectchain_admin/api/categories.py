# connectchain_admin/api/categories.py
from flask import Blueprint, jsonify, request, current_app

from connectchain_admin.api.request_parsing import get_payload, get_upload
from connectchain_admin.db import get_session
from connectchain_admin.services import CategoryService

categories_bp = Blueprint('categories', __name__, url_prefix='/api/categories')


def _service():
    return CategoryService(get_session(), current_app.extensions['media_store'])


@categories_bp.route('', methods=['GET'])
def list_categories():
    """Get categories with product counts, pagination and filtering."""
    result = _service().list_categories(request.args)
    return jsonify({
        'success': True,
        'message': 'Categories retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@categories_bp.route('/<int:category_id>', methods=['GET'])
def get_category(category_id):
    return jsonify({
        'success': True,
        'message': 'Category retrieved successfully',
        'data': _service().get_category(category_id)
    })


@categories_bp.route('', methods=['POST'])
def create_category():
    category = _service().create_category(get_payload(), get_upload('image'))
    return jsonify({
        'success': True,
        'message': 'Category created successfully',
        'data': category
    }), 201


@categories_bp.route('/<int:category_id>', methods=['PUT'])
def update_category(category_id):
    return jsonify({
        'success': True,
        'message': 'Category updated successfully',
        'data': _service().update_category(category_id, get_payload())
    })


@categories_bp.route('/<int:category_id>/status', methods=['PATCH'])
def update_category_status(category_id):
    """Change a category's status and cascade it to its products."""
    status = get_payload().get('status')
    category = _service().update_category_status(category_id, status)
    return jsonify({
        'success': True,
        'message': f"Category and its products are now {status}",
        'data': category
    })


@categories_bp.route('/<int:category_id>', methods=['DELETE'])
def delete_category(category_id):
    _service().delete_category(category_id)
    return jsonify({
        'success': True,
        'message': 'Category deleted successfully'
    })


@categories_bp.route('/<int:category_id>/products', methods=['GET'])
def get_category_products(category_id):
    result = _service().get_category_products(category_id, request.args)
    return jsonify({
        'success': True,
        'message': 'Category products retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@categories_bp.route('/<int:category_id>/image', methods=['POST'])
def upload_category_image(category_id):
    category = _service().upload_category_image(category_id, get_upload('image'))
    return jsonify({
        'success': True,
        'message': 'Category image uploaded successfully',
        'data': category
    })


@categories_bp.route('/<int:category_id>/image', methods=['DELETE'])
def delete_category_image(category_id):
    return jsonify({
        'success': True,
        'message': 'Category image deleted successfully',
        'data': _service().delete_category_image(category_id)
    })
