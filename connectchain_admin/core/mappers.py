# connectchain_admin/core/mappers.py
"""
Mapping from ORM records to the external JSON contract.

Every function here is pure: it reads attributes already loaded on the
record (or lazily loaded by the session the caller holds) and returns a
plain dict with camelCase keys. Soft-deleted children are never emitted.
Currency is rendered as a two-decimal number and timestamps as ISO-8601.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from connectchain_admin.models import OrderStatus

TWO_PLACES = Decimal('0.01')


def format_money(value) -> float:
    """Render a stored amount as a number with exactly two decimal places."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def product_status_label(product) -> str:
    """Derive the product status label.

    Returns:
        'inactive' when soft-deleted, 'out_of_stock' when stock is zero or
        missing, 'active' otherwise
    """
    if product.deleted:
        return 'inactive'
    if not product.stock or product.stock <= 0:
        return 'out_of_stock'
    return 'active'


def _user_contact(user, include_address=False) -> Optional[Dict]:
    if user is None:
        return None
    contact = {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'phone': user.phone_number,
    }
    if include_address:
        contact['address'] = user.address
    return contact


def _updated_or_created(record) -> Optional[str]:
    return format_timestamp(record.updated_date or record.created_date)


def map_product(product) -> Dict:
    """Map a product aggregate with its live children and references."""
    images = [image.url for image in product.live_images]
    category = product.category
    supplier = product.supplier
    customer = product.customer

    return {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'price': format_money(product.price),
        'stock': product.stock,
        'minimumStock': product.minimum_stock,
        'sku': product.sku,
        'status': product_status_label(product),
        'categoryId': product.category_id,
        'supplierId': product.supplier_id,
        'customerId': product.customer_id,
        'image': images[0] if images else None,
        'images': images,
        'category': {
            'id': category.id,
            'name': category.name,
            'description': category.description,
        } if category is not None else None,
        'supplier': _user_contact(supplier.user) if supplier is not None else None,
        'customer': _user_contact(customer.user) if customer is not None else None,
        'attributes': [
            {'id': attribute.id, 'key': attribute.key, 'value': attribute.value}
            for attribute in product.live_attributes
        ],
        'variants': [
            {
                'id': variant.id,
                'name': variant.name,
                'type': variant.type,
                'price': format_money(variant.custom_price),
                'stock': variant.stock,
            }
            for variant in product.live_variants
        ],
        'createdAt': format_timestamp(product.created_date),
        'updatedAt': _updated_or_created(product),
    }


def map_product_summary(product) -> Dict:
    """Compact product shape used inside category and supplier listings."""
    images = [image.url for image in product.live_images]
    return {
        'id': product.id,
        'name': product.name or '',
        'sku': product.sku or '',
        'price': format_money(product.price),
        'stock': product.stock or 0,
        'status': product_status_label(product),
        'image': images[0] if images else None,
        'categoryId': product.category_id,
        'category': product.category.name if product.category is not None else None,
        'createdAt': format_timestamp(product.created_date),
        'updatedAt': _updated_or_created(product),
    }


def map_category(category, product_count: int = 0) -> Dict:
    """Map a category.

    Args:
        category: Category record
        product_count: Count computed with the shared product predicate
    """
    return {
        'id': category.id,
        'name': category.name,
        'description': category.description,
        'status': 'inactive' if category.deleted else 'active',
        'productCount': product_count,
        'image': category.image_url,
        'createdAt': format_timestamp(category.created_date),
        'updatedAt': _updated_or_created(category),
    }


def _user_status(user) -> str:
    return 'banned' if user.lockout_enabled else 'active'


def _verification_status(user) -> str:
    return 'verified' if user.email_confirmed else 'pending'


def map_supplier(user, product_count: Optional[int] = None) -> Dict:
    data = {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'phone': user.phone_number,
        'address': user.address,
        'status': _user_status(user),
        'verificationStatus': _verification_status(user),
        'categories': user.business_type,
        'contactPerson': user.name,
        'logo': user.image_url,
    }
    if product_count is not None:
        data['productCount'] = product_count
    return data


def map_customer(user) -> Dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'type': 'customer' if user.customer is not None else 'user',
        'status': _user_status(user),
        'avatar': user.image_url,
        'phone': user.phone_number,
        'address': user.address,
        'businessType': user.business_type,
        'verificationStatus': _verification_status(user),
    }


def order_total(order) -> Decimal:
    """Sub total plus delivery fees minus discount."""
    return (Decimal(str(order.sub_total or 0)) + Decimal(str(order.delivery_fees or 0))
            - Decimal(str(order.discount or 0)))


def map_order(order) -> Dict:
    status = OrderStatus(order.status)
    customer = order.customer
    supplier = order.supplier

    items = []
    for item in order.live_items:
        product = item.product
        price = product.price if product is not None else 0
        items.append({
            'id': item.id,
            'productId': item.product_id,
            'quantity': item.quantity,
            'unitPrice': format_money(price),
            'lineTotal': format_money(Decimal(str(price or 0)) * item.quantity),
            'product': {
                'id': product.id,
                'name': product.name,
                'sku': product.sku,
                'image': product.live_images[0].url if product.live_images else None,
            } if product is not None else None,
        })

    return {
        'id': order.id,
        'orderNumber': order.order_number,
        'status': status.label,
        'statusCode': int(status),
        'subTotal': format_money(order.sub_total),
        'deliveryFees': format_money(order.delivery_fees),
        'discount': format_money(order.discount),
        'total': format_money(order_total(order)),
        'notes': order.notes,
        'paymentMethod': order.payment_method,
        'customer': _user_contact(customer.user, include_address=True) if customer is not None else None,
        'supplier': _user_contact(supplier.user, include_address=True) if supplier is not None else None,
        'items': items,
        'createdAt': format_timestamp(order.created_date),
        'updatedAt': _updated_or_created(order),
    }


def map_pagination(pagination: Dict) -> Dict:
    """Translate calculate_pagination output to the external keys."""
    return {
        'currentPage': pagination['page'],
        'totalPages': pagination['pages'],
        'totalItems': pagination['total'],
        'itemsPerPage': pagination['limit'],
        'hasNextPage': pagination['hasNext'],
        'hasPreviousPage': pagination['hasPrev'],
    }
