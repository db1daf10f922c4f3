# connectchain_admin/services/order_service.py
import uuid
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from connectchain_admin.core.filtering import (
    ORDER_SORT_FIELDS, parse_order_query, build_order_predicate, order_by_clause
)
from connectchain_admin.core.mappers import map_order
from connectchain_admin.exceptions import ValidationError, NotFoundError, StateConflictError
from connectchain_admin.logging_setup import get_logger
from connectchain_admin.models import Order, OrderItem, OrderStatus, Product, Customer, Supplier
from connectchain_admin.services.base_service import BaseService
from connectchain_admin.utils.validation import (
    to_decimal, to_int, to_optional_str, require_fields, reject_unknown_fields
)

logger = get_logger('order_service')

MAX_ITEMS_PER_ORDER = 50
MAX_ITEM_QUANTITY = 1000
MAX_AMOUNT = Decimal('999999.99')
PAYMENT_METHODS = ('cash', 'card', 'bank_transfer', 'digital_wallet')
ORDER_FIELDS = ('CustomerId', 'SupplierId', 'items', 'DeliveryFees', 'Discount', 'Notes', 'PaymentMethod')


def _amount(payload: Dict, key: str) -> Decimal:
    if payload.get(key) is None:
        return Decimal('0.00')
    value = to_decimal(payload[key], key)
    if value > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return value


def _parse_items(raw_items) -> "OrderedDict[int, int]":
    """Validate order lines and merge repeated products.

    Returns:
        Ordered mapping of product ID to total quantity
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    if len(raw_items) > MAX_ITEMS_PER_ORDER:
        raise ValidationError(f"Cannot exceed {MAX_ITEMS_PER_ORDER} items per order")

    quantities = OrderedDict()
    for item in raw_items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        reject_unknown_fields(item, ('ProductId', 'Quantity'), 'order item')
        require_fields(item, 'ProductId', 'Quantity')
        product_id = to_int(item['ProductId'], 'Product ID', minimum=1)
        quantity = to_int(item['Quantity'], 'Quantity', minimum=1)
        if quantity > MAX_ITEM_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_ITEM_QUANTITY}")
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


class OrderService(BaseService):
    """Service for orders and their status lifecycle."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _get_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if order is None or order.deleted:
            raise NotFoundError("Order not found")
        return order

    def list_orders(self, params: Mapping) -> Dict:
        """List orders.

        Args:
            params: Raw query parameters (search, status, customerId,
                    supplierId, dateFrom, dateTo, page, limit, sort, order)

        Returns:
            Dictionary with mapped 'items' and 'pagination'
        """
        criteria, page, sort = parse_order_query(params)
        predicate = build_order_predicate(criteria)
        query = self.session.query(Order).filter(predicate)
        total = self.session.query(func.count(Order.id)).filter(predicate).scalar()
        return self._page(query, total, page, order_by_clause(ORDER_SORT_FIELDS, sort, Order.id), map_order)

    def get_order(self, order_id: int) -> Dict:
        return map_order(self._get_order(order_id))

    def create_order(self, payload: Dict) -> Dict:
        """Create an order and reserve stock.

        Stock is checked and decremented and the order lines are inserted
        in one transaction.

        Args:
            payload: CustomerId, SupplierId, items [{ProductId, Quantity}],
                     optional DeliveryFees, Discount, Notes, PaymentMethod

        Returns:
            Mapped order

        Raises:
            NotFoundError: customer, supplier or a product does not exist
            StateConflictError: a product has insufficient stock
        """
        payload = dict(payload or {})
        reject_unknown_fields(payload, ORDER_FIELDS, 'order')
        require_fields(payload, 'CustomerId', 'SupplierId', 'items')

        quantities = _parse_items(payload['items'])
        delivery_fees = _amount(payload, 'DeliveryFees')
        discount = _amount(payload, 'Discount')
        notes = to_optional_str(payload.get('Notes'), 'Notes', 1000) or ''
        payment_method = payload.get('PaymentMethod') or 'cash'
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")

        if self.session.get(Customer, payload['CustomerId']) is None:
            raise NotFoundError("Customer not found")
        if self.session.get(Supplier, payload['SupplierId']) is None:
            raise NotFoundError("Supplier not found")

        try:
            sub_total = Decimal('0.00')
            products = []
            for product_id, quantity in quantities.items():
                product = self.session.query(Product).filter(
                    Product.id == product_id,
                    Product.deleted.is_(False)
                ).with_for_update().first()
                if product is None:
                    raise NotFoundError(f"Product with ID {product_id} not found")
                available = product.stock or 0
                if available < quantity:
                    raise StateConflictError(
                        f"Insufficient stock for product {product.name}. "
                        f"Available: {available}, Requested: {quantity}",
                        details={'productId': product_id, 'available': available, 'requested': quantity}
                    )
                sub_total += Decimal(str(product.price)) * quantity
                products.append((product, quantity))

            now = datetime.utcnow()
            order = Order(
                order_number=str(uuid.uuid4()),
                customer_id=payload['CustomerId'],
                supplier_id=payload['SupplierId'],
                sub_total=sub_total,
                delivery_fees=delivery_fees,
                discount=discount,
                notes=notes,
                payment_method=payment_method,
                status=int(OrderStatus.PENDING),
                deleted=False,
                created_date=now,
                updated_date=now
            )
            self.session.add(order)
            self.session.flush()

            for product, quantity in products:
                self.session.add(OrderItem(order_id=order.id, product_id=product.id,
                                           quantity=quantity, deleted=False, created_date=now,
                                           updated_date=now))
                product.stock = (product.stock or 0) - quantity
                product.updated_date = now

            self._commit("Order number already exists")
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Created order {order.order_number} with {len(products)} lines, subtotal {sub_total}")
        return map_order(order)

    def update_order_status(self, order_id: int, status, notes: Optional[str] = None) -> Dict:
        """Move an order to a new status.

        Args:
            order_id: Order ID
            status: Status code or label
            notes: Optional replacement notes

        Raises:
            StateConflictError if the order already has the status or is
            delivered or cancelled
        """
        try:
            new_status = OrderStatus.from_value(status)
        except ValueError as e:
            raise ValidationError(str(e))
        if notes is not None:
            notes = to_optional_str(notes, 'Notes', 1000)

        order = self._get_order(order_id)
        current = OrderStatus(order.status)
        if current == new_status:
            raise StateConflictError("Order is already in this status")
        if current.is_terminal:
            raise StateConflictError("Cannot update status of cancelled or delivered orders")

        order.status = int(new_status)
        if notes is not None:
            order.notes = notes
        order.updated_date = datetime.utcnow()
        self._commit()

        logger.info(f"Order {order.order_number} moved from {current.label} to {new_status.label}")
        return map_order(order)

    def approve_order(self, order_id: int) -> Dict:
        return self.update_order_status(order_id, OrderStatus.PROCESSING)

    def reject_order(self, order_id: int, reason: Optional[str] = None) -> Dict:
        return self.update_order_status(order_id, OrderStatus.CANCELLED, notes=reason)

    def complete_order(self, order_id: int) -> Dict:
        return self.update_order_status(order_id, OrderStatus.DELIVERED)
