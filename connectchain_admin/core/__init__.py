from .filtering import (
    PageDescriptor, SortDescriptor, ProductCriteria, CategoryCriteria, UserCriteria, OrderCriteria,
    parse_product_query, parse_category_query, parse_user_query, parse_order_query,
    build_product_predicate, build_category_predicate, build_user_predicate, build_order_predicate,
    count_category_products, calculate_pagination
)
from .reconciler import (
    ChildAction, CreateOp, UpdateOp, DeleteOp, AggregateUpdate, ProductReconciler,
    parse_child_ops, apply_child_op, build_aggregate_update
)
from .mappers import (
    map_product, map_product_summary, map_category, map_supplier, map_customer, map_order,
    map_pagination, format_money, format_timestamp, product_status_label
)

__all__ = [
    'PageDescriptor',
    'SortDescriptor',
    'ProductCriteria',
    'CategoryCriteria',
    'UserCriteria',
    'OrderCriteria',
    'parse_product_query',
    'parse_category_query',
    'parse_user_query',
    'parse_order_query',
    'build_product_predicate',
    'build_category_predicate',
    'build_user_predicate',
    'build_order_predicate',
    'count_category_products',
    'calculate_pagination',
    'ChildAction',
    'CreateOp',
    'UpdateOp',
    'DeleteOp',
    'AggregateUpdate',
    'ProductReconciler',
    'parse_child_ops',
    'apply_child_op',
    'build_aggregate_update',
    'map_product',
    'map_product_summary',
    'map_category',
    'map_supplier',
    'map_customer',
    'map_order',
    'map_pagination',
    'format_money',
    'format_timestamp',
    'product_status_label'
]
