from .product_service import ProductService
from .category_service import CategoryService
from .supplier_service import SupplierService
from .customer_service import CustomerService
from .order_service import OrderService

__all__ = [
    'ProductService',
    'CategoryService',
    'SupplierService',
    'CustomerService',
    'OrderService'
]
