# connectchain_admin/core/filtering.py
"""
Query-parameter parsing and predicate construction for the listing endpoints.

Every listing surface goes through the same two steps:

1. ``parse_<surface>_query(params)`` turns raw query parameters into an
   immutable criteria tuple, a ``PageDescriptor`` and a ``SortDescriptor``.
   Identical parameters always give equal tuples.
2. ``build_<surface>_predicate(criteria)`` turns the criteria into a
   SQLAlchemy boolean clause.

``build_product_predicate`` is the only place the product filter is
assembled. Product listings, category product listings and category product
counts all call it, so a category's advertised count cannot drift from what
the product list returns for that category.
"""
import math
from datetime import timedelta
from typing import Dict, Mapping, NamedTuple, Optional, Tuple

from sqlalchemy import and_, or_, true, func, asc, desc
from sqlalchemy.orm import Session

from connectchain_admin.exceptions import ValidationError
from connectchain_admin.models import (
    Product, Category, User, Supplier, Customer, Order, OrderStatus
)
from connectchain_admin.utils.validation import to_int, to_bool, to_datetime, to_optional_str

MAX_PAGE_SIZE = 100

DEFAULT_PAGE_SIZES = {
    'products': 20,
    'categories': 10,
    'suppliers': 20,
    'customers': 10,
    'orders': 10,
}

PRODUCT_SORT_FIELDS = {
    'name': Product.name,
    'sku': Product.sku,
    'price': Product.price,
    'stock': Product.stock,
    'createdAt': Product.created_date,
    'updatedAt': Product.updated_date,
}

CATEGORY_SORT_FIELDS = {
    'name': Category.name,
    'createdAt': Category.created_date,
    'updatedAt': Category.updated_date,
    # Counts are computed after paging, so order by name instead
    'productCount': Category.name,
}

# Users carry no timestamps; Id stands in for creation order
USER_SORT_FIELDS = {
    'name': User.name,
    'email': User.email,
    'createdAt': User.id,
    'updatedAt': User.id,
}

ORDER_SORT_FIELDS = {
    'orderNumber': Order.order_number,
    'status': Order.status,
    'subTotal': Order.sub_total,
    'createdAt': Order.created_date,
    'updatedAt': Order.updated_date,
}

PRODUCT_STATUSES = ('active', 'inactive', 'out_of_stock', 'all')
CATEGORY_STATUSES = ('active', 'inactive', 'all')
USER_STATUSES = ('active', 'banned')
VERIFICATION_STATUSES = ('verified', 'pending')


class PageDescriptor(NamedTuple):
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class SortDescriptor(NamedTuple):
    field: str
    order: str = 'desc'


class ProductCriteria(NamedTuple):
    search: Optional[str] = None
    category_id: Optional[int] = None
    supplier_id: Optional[str] = None
    customer_id: Optional[str] = None
    in_stock: Optional[bool] = None
    status: Optional[str] = None


class CategoryCriteria(NamedTuple):
    search: Optional[str] = None
    status: str = 'active'


class UserCriteria(NamedTuple):
    search: Optional[str] = None
    status: Optional[str] = None
    verification_status: Optional[str] = None


class OrderCriteria(NamedTuple):
    search: Optional[str] = None
    status: Optional[int] = None
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    date_from: Optional[object] = None
    date_to: Optional[object] = None
    date_to_inclusive_day: bool = False


# ---------------------------------------------------------------------------
# Parameter parsing
# ---------------------------------------------------------------------------

def _clean(params: Mapping, key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _choice(params: Mapping, key: str, allowed, label: str) -> Optional[str]:
    value = _clean(params, key)
    if value is None:
        return None
    if value not in allowed:
        raise ValidationError(f"{label} must be one of: {', '.join(allowed)}")
    return value


def parse_page(params: Mapping, default_limit: int) -> PageDescriptor:
    """Build a page descriptor from 'page' and 'limit' parameters.

    Args:
        params: Raw query parameters
        default_limit: Page size used when 'limit' is absent

    Returns:
        PageDescriptor with page >= 1 and 1 <= limit <= MAX_PAGE_SIZE
    """
    raw_page = _clean(params, 'page')
    raw_limit = _clean(params, 'limit')

    page = to_int(raw_page, 'page', minimum=1) if raw_page is not None else 1
    limit = to_int(raw_limit, 'limit', minimum=1) if raw_limit is not None else default_limit
    if limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must not exceed {MAX_PAGE_SIZE}")

    return PageDescriptor(page=page, limit=limit)


def parse_sort(params: Mapping, allowed: Mapping, default_field: str,
               default_order: str = 'desc') -> SortDescriptor:
    """Build a sort descriptor restricted to an allow-list of fields."""
    field = _clean(params, 'sort') or default_field
    order = (_clean(params, 'order') or default_order).lower()

    if field not in allowed:
        raise ValidationError(f"sort must be one of: {', '.join(allowed)}")
    if order not in ('asc', 'desc'):
        raise ValidationError("order must be one of: asc, desc")

    return SortDescriptor(field=field, order=order)


def parse_product_filters(params: Mapping, search_key: str = 'search',
                          status_key: str = 'status') -> ProductCriteria:
    """Parse only the product filter parameters, without paging or sort.

    The key names are configurable so other listings can forward product
    filters without clashing with their own search and status parameters.
    """
    category = _clean(params, 'category')
    in_stock = _clean(params, 'inStock')

    return ProductCriteria(
        search=to_optional_str(_clean(params, search_key), search_key),
        category_id=to_int(category, 'category', minimum=1) if category is not None else None,
        supplier_id=_clean(params, 'supplierId'),
        customer_id=_clean(params, 'customerId'),
        in_stock=to_bool(in_stock, 'inStock') if in_stock is not None else None,
        status=_choice(params, status_key, PRODUCT_STATUSES, status_key),
    )


def parse_product_query(params: Mapping) -> Tuple[ProductCriteria, PageDescriptor, SortDescriptor]:
    return (
        parse_product_filters(params),
        parse_page(params, DEFAULT_PAGE_SIZES['products']),
        parse_sort(params, PRODUCT_SORT_FIELDS, 'createdAt'),
    )


def parse_category_query(params: Mapping) -> Tuple[CategoryCriteria, PageDescriptor, SortDescriptor]:
    criteria = CategoryCriteria(
        search=to_optional_str(_clean(params, 'search'), 'search'),
        status=_choice(params, 'status', CATEGORY_STATUSES, 'status') or 'active',
    )
    return (
        criteria,
        parse_page(params, DEFAULT_PAGE_SIZES['categories']),
        parse_sort(params, CATEGORY_SORT_FIELDS, 'updatedAt'),
    )


def parse_user_query(params: Mapping, surface: str) -> Tuple[UserCriteria, PageDescriptor, SortDescriptor]:
    """Parse supplier or customer listing parameters.

    Args:
        params: Raw query parameters
        surface: 'suppliers' or 'customers'
    """
    criteria = UserCriteria(
        search=to_optional_str(_clean(params, 'search'), 'search'),
        status=_choice(params, 'status', USER_STATUSES, 'status'),
        verification_status=_choice(params, 'verificationStatus', VERIFICATION_STATUSES,
                                    'verificationStatus'),
    )
    return (
        criteria,
        parse_page(params, DEFAULT_PAGE_SIZES[surface]),
        parse_sort(params, USER_SORT_FIELDS, 'updatedAt'),
    )


def parse_order_query(params: Mapping) -> Tuple[OrderCriteria, PageDescriptor, SortDescriptor]:
    raw_status = _clean(params, 'status')
    status = None
    if raw_status is not None:
        try:
            status = int(OrderStatus.from_value(raw_status))
        except ValueError as e:
            raise ValidationError(str(e))

    raw_from = _clean(params, 'dateFrom')
    raw_to = _clean(params, 'dateTo')
    date_from = to_datetime(raw_from, 'dateFrom') if raw_from is not None else None
    date_to = to_datetime(raw_to, 'dateTo') if raw_to is not None else None
    if date_from and date_to and date_from > date_to:
        raise ValidationError("dateFrom must not be after dateTo")

    criteria = OrderCriteria(
        search=to_optional_str(_clean(params, 'search'), 'search'),
        status=status,
        customer_id=_clean(params, 'customerId'),
        supplier_id=_clean(params, 'supplierId'),
        date_from=date_from,
        date_to=date_to,
        # A bare date as upper bound covers that whole day
        date_to_inclusive_day=bool(raw_to) and 'T' not in str(raw_to) and ' ' not in str(raw_to),
    )
    return (
        criteria,
        parse_page(params, DEFAULT_PAGE_SIZES['orders']),
        parse_sort(params, ORDER_SORT_FIELDS, 'createdAt'),
    )


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def _like_pattern(term: str) -> str:
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _search_clause(term: str, *columns):
    pattern = _like_pattern(term.strip())
    return or_(*[column.ilike(pattern, escape='\\') for column in columns])


def _out_of_stock_clause():
    return or_(Product.stock <= 0, Product.stock.is_(None))


def build_product_predicate(criteria: ProductCriteria):
    """Build the product filter shared by every product list and count.

    Soft-deleted products are excluded unless status is 'inactive' or 'all'.

    Args:
        criteria: Parsed product criteria

    Returns:
        SQLAlchemy boolean clause
    """
    clauses = []

    status = criteria.status
    if status == 'inactive':
        clauses.append(Product.deleted.is_(True))
    elif status != 'all':
        clauses.append(Product.deleted.is_(False))

    if status == 'active':
        clauses.append(Product.stock > 0)
    elif status == 'out_of_stock':
        clauses.append(_out_of_stock_clause())

    if criteria.search:
        clauses.append(_search_clause(criteria.search, Product.name, Product.sku))

    if criteria.category_id is not None:
        clauses.append(Product.category_id == criteria.category_id)

    if criteria.supplier_id:
        clauses.append(Product.supplier_id == criteria.supplier_id)

    if criteria.customer_id:
        clauses.append(Product.customer_id == criteria.customer_id)

    if criteria.in_stock is True:
        clauses.append(Product.stock > 0)
    elif criteria.in_stock is False:
        clauses.append(_out_of_stock_clause())

    return and_(true(), *clauses)


def build_category_predicate(criteria: CategoryCriteria):
    clauses = []

    if criteria.status == 'active':
        clauses.append(Category.deleted.is_(False))
    elif criteria.status == 'inactive':
        clauses.append(Category.deleted.is_(True))

    if criteria.search:
        clauses.append(_search_clause(criteria.search, Category.name, Category.description))

    return and_(true(), *clauses)


def build_user_predicate(criteria: UserCriteria, role: str):
    """Build the filter for users holding a supplier or customer profile.

    Args:
        criteria: Parsed user criteria
        role: 'supplier' or 'customer'
    """
    if role == 'supplier':
        clauses = [User.supplier.has()]
    elif role == 'customer':
        clauses = [User.customer.has()]
    else:
        raise ValueError(f"Unknown user role: {role}")

    if criteria.search:
        clauses.append(_search_clause(criteria.search, User.name, User.email))

    if criteria.status == 'active':
        clauses.append(User.lockout_enabled.is_(False))
    elif criteria.status == 'banned':
        clauses.append(User.lockout_enabled.is_(True))

    if criteria.verification_status == 'verified':
        clauses.append(User.email_confirmed.is_(True))
    elif criteria.verification_status == 'pending':
        clauses.append(User.email_confirmed.is_(False))

    return and_(*clauses)


def build_order_predicate(criteria: OrderCriteria):
    clauses = [Order.deleted.is_(False)]

    if criteria.search:
        pattern = _like_pattern(criteria.search.strip())
        clauses.append(or_(
            Order.order_number.ilike(pattern, escape='\\'),
            Order.customer.has(Customer.user.has(User.name.ilike(pattern, escape='\\'))),
            Order.supplier.has(Supplier.user.has(User.name.ilike(pattern, escape='\\'))),
        ))

    if criteria.status is not None:
        clauses.append(Order.status == criteria.status)

    if criteria.customer_id:
        clauses.append(Order.customer_id == criteria.customer_id)

    if criteria.supplier_id:
        clauses.append(Order.supplier_id == criteria.supplier_id)

    if criteria.date_from is not None:
        clauses.append(Order.created_date >= criteria.date_from)

    if criteria.date_to is not None:
        if criteria.date_to_inclusive_day:
            clauses.append(Order.created_date < criteria.date_to + timedelta(days=1))
        else:
            clauses.append(Order.created_date <= criteria.date_to)

    return and_(*clauses)


# ---------------------------------------------------------------------------
# Ordering, counting and pagination
# ---------------------------------------------------------------------------

def order_by_clause(allowed: Mapping, sort: SortDescriptor, tie_breaker):
    """Translate a sort descriptor into ORDER BY clauses.

    The tie breaker keeps page boundaries stable when sort values repeat.
    """
    column = allowed[sort.field]
    direction = asc if sort.order == 'asc' else desc
    return [direction(column), direction(tie_breaker)]


def product_order_by(sort: SortDescriptor):
    return order_by_clause(PRODUCT_SORT_FIELDS, sort, Product.id)


def count_products(session: Session, criteria: ProductCriteria) -> int:
    return session.query(func.count(Product.id)).filter(build_product_predicate(criteria)).scalar()


def count_category_products(session: Session, category_id: int,
                            product_criteria: Optional[ProductCriteria] = None) -> int:
    """Count a category's products exactly as the product listing would.

    Args:
        session: Database session
        category_id: Category ID
        product_criteria: Other product filters held constant

    Returns:
        Number of products the listing returns when filtered to the category
    """
    criteria = (product_criteria or ProductCriteria())._replace(category_id=category_id)
    return count_products(session, criteria)


def calculate_pagination(page: PageDescriptor, total: int) -> Dict:
    """Calculate pagination metadata.

    Args:
        page: Page descriptor used for the query
        total: Total matching rows

    Returns:
        Dictionary with page, limit, total, pages, hasNext and hasPrev
    """
    pages = math.ceil(total / page.limit) if total else 0
    return {
        'page': page.page,
        'limit': page.limit,
        'total': total,
        'pages': pages,
        'hasNext': page.page < pages,
        'hasPrev': page.page > 1,
    }
