# connectchain_admin/api/products.py
"""
Routes for product management.

Create and update accept JSON or multipart bodies. In multipart bodies the
'Attributes', 'Variants' and 'imagesToDelete' fields are JSON strings and
image files go in 'images'.
"""
from flask import Blueprint, jsonify, request, current_app

from connectchain_admin.api.request_parsing import get_payload, get_uploads
from connectchain_admin.db import get_session
from connectchain_admin.services import ProductService

products_bp = Blueprint('products', __name__, url_prefix='/api/products')


def _service():
    return ProductService(get_session(), current_app.extensions['media_store'])


@products_bp.route('', methods=['GET'])
def list_products():
    """Get products with pagination, search and filtering."""
    result = _service().list_products(request.args)
    return jsonify({
        'success': True,
        'message': 'Products retrieved successfully',
        'data': result['items'],
        'pagination': result['pagination']
    })


@products_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id):
    product = _service().get_product(product_id)
    return jsonify({
        'success': True,
        'message': 'Product retrieved successfully',
        'data': product
    })


@products_bp.route('', methods=['POST'])
def create_product():
    product = _service().create_product(get_payload(), get_uploads('images'))
    return jsonify({
        'success': True,
        'message': 'Product created successfully',
        'data': product
    }), 201


@products_bp.route('/<int:product_id>', methods=['PUT'])
def update_product(product_id):
    """Update a product together with its attributes, variants and images."""
    result = _service().update_product(product_id, get_payload(), get_uploads('images'))

    body = {
        'success': True,
        'message': 'Product updated successfully',
        'data': result['product']
    }
    if result['skipped']:
        body['skipped'] = result['skipped']
    return jsonify(body)


@products_bp.route('/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    _service().delete_product(product_id)
    return jsonify({
        'success': True,
        'message': 'Product deleted successfully'
    })


@products_bp.route('/<int:product_id>/status', methods=['PATCH'])
def update_product_status(product_id):
    status = get_payload().get('status')
    product = _service().update_product_status(product_id, status)
    return jsonify({
        'success': True,
        'message': f"Product status updated to {status}",
        'data': product
    })


@products_bp.route('/<int:product_id>/images', methods=['POST'])
def upload_product_images(product_id):
    result = _service().upload_product_images(product_id, get_uploads('images'))
    return jsonify({
        'success': True,
        'message': f"{len(result['images'])} image(s) uploaded successfully",
        'data': result
    }), 201


@products_bp.route('/<int:product_id>/images', methods=['DELETE'])
def delete_product_image_by_url(product_id):
    result = _service().delete_product_image_by_url(product_id, get_payload().get('imageUrl'))
    return jsonify({
        'success': True,
        'message': 'Image deleted successfully',
        'data': result
    })


@products_bp.route('/<int:product_id>/images/<int:image_id>', methods=['DELETE'])
def delete_product_image(product_id, image_id):
    result = _service().delete_product_image(product_id, image_id)
    return jsonify({
        'success': True,
        'message': 'Image deleted successfully',
        'data': result
    })
