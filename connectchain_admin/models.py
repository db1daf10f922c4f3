# connectchain_admin/models.py
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Text, Index
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import enum

Base = declarative_base()

class OrderStatus(enum.IntEnum):
    """Order lifecycle codes as stored in the Order.Status column.

    Values:
        PENDING (0): Created, waiting for the supplier
        PROCESSING (1): Accepted and being prepared
        SHIPPED (2): Handed to delivery
        DELIVERED (3): Terminal, received by the customer
        CANCELLED (4): Terminal, rejected or cancelled
    """
    PENDING = 0
    PROCESSING = 1
    SHIPPED = 2
    DELIVERED = 3
    CANCELLED = 4

    @property
    def label(self):
        return self.name.lower()

    @property
    def is_terminal(self):
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    @classmethod
    def from_value(cls, value) -> 'OrderStatus':
        """Create an OrderStatus from a code or a label.

        Args:
            value: Integer code (0-4), numeric string or label ('pending', ...)

        Returns:
            OrderStatus enum value

        Raises:
            ValueError if the value is not a known status
        """
        if isinstance(value, str) and not value.strip().lstrip('-').isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Invalid order status: {value}")
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid order status: {value}")


class User(Base):
    __tablename__ = 'Users'

    id = Column('Id', String(450), primary_key=True)
    name = Column('Name', String(255))
    email = Column('Email', String(256), unique=True)
    phone_number = Column('PhoneNumber', String(50))
    address = Column('Address', String(500))
    business_type = Column('BusinessType', String(255))
    image_url = Column('ImageUrl', String(1000))
    email_confirmed = Column('EmailConfirmed', Boolean, nullable=False, default=False)
    lockout_enabled = Column('LockoutEnabled', Boolean, nullable=False, default=False)
    lockout_end = Column('LockoutEnd', DateTime)

    supplier = relationship("Supplier", back_populates="user", uselist=False)
    customer = relationship("Customer", back_populates="user", uselist=False)


class Supplier(Base):
    __tablename__ = 'Suppliers'

    id = Column('Id', String(450), ForeignKey('Users.Id'), primary_key=True)

    user = relationship("User", back_populates="supplier")
    products = relationship("Product", back_populates="supplier")
    orders = relationship("Order", back_populates="supplier")


class Customer(Base):
    __tablename__ = 'Customer'

    id = Column('Id', String(450), ForeignKey('Users.Id'), primary_key=True)

    user = relationship("User", back_populates="customer")
    products = relationship("Product", back_populates="customer")
    orders = relationship("Order", back_populates="customer")


class Category(Base):
    __tablename__ = 'Categories'

    id = Column('ID', Integer, primary_key=True)
    name = Column('Name', String(255), nullable=False)
    description = Column('Description', Text)
    image_url = Column('ImageUrl', String(1000))
    image_storage_id = Column('ImageStorageId', String(500))
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime, default=func.now(), onupdate=func.now())

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = 'Products'

    id = Column('ID', Integer, primary_key=True)
    name = Column('Name', String(255))
    description = Column('Description', Text)
    price = Column('Price', Numeric(18, 2), nullable=False, default=0)
    stock = Column('Stock', Integer)
    minimum_stock = Column('MinimumStock', Integer, default=0)
    sku = Column('SKU', String(64), nullable=False, unique=True)
    category_id = Column('CategoryId', Integer, ForeignKey('Categories.ID'), nullable=False)
    supplier_id = Column('SupplierId', String(450), ForeignKey('Suppliers.Id'))
    customer_id = Column('CustomerId', String(450), ForeignKey('Customer.Id'))
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime, default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier", back_populates="products")
    customer = relationship("Customer", back_populates="products")
    # Ordered by ID so the first live image is the primary one
    images = relationship("ProductImage", back_populates="product", order_by="ProductImage.id")
    attributes = relationship("ProductAttribute", back_populates="product", order_by="ProductAttribute.id")
    variants = relationship("ProductVariant", back_populates="product", order_by="ProductVariant.id")

    __table_args__ = (
        Index('idx_products_category_deleted', 'CategoryId', 'Deleted'),
    )

    @property
    def live_images(self):
        return [image for image in self.images if not image.deleted]

    @property
    def live_attributes(self):
        return [attribute for attribute in self.attributes if not attribute.deleted]

    @property
    def live_variants(self):
        return [variant for variant in self.variants if not variant.deleted]


class ProductAttribute(Base):
    __tablename__ = 'ProductAttribute'

    id = Column('ID', Integer, primary_key=True)
    product_id = Column('ProductId', Integer, ForeignKey('Products.ID'), nullable=False)
    key = Column('Key', String(255), nullable=False)
    value = Column('Value', String(255), nullable=False)
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime)

    product = relationship("Product", back_populates="attributes")


class ProductVariant(Base):
    __tablename__ = 'ProductVariant'

    id = Column('ID', Integer, primary_key=True)
    product_id = Column('ProductId', Integer, ForeignKey('Products.ID'), nullable=False)
    name = Column('Name', String(255))
    type = Column('Type', String(255))
    custom_price = Column('CustomPrice', Numeric(18, 2), nullable=False, default=0)
    stock = Column('Stock', Integer, nullable=False, default=0)
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime)

    product = relationship("Product", back_populates="variants")


class ProductImage(Base):
    __tablename__ = 'Images'

    id = Column('ID', Integer, primary_key=True)
    product_id = Column('ProductId', Integer, ForeignKey('Products.ID'), nullable=False)
    url = Column('Url', String(1000), nullable=False)
    # Persisted so deletion never has to parse it back out of the URL
    storage_id = Column('StorageId', String(500))
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime)

    product = relationship("Product", back_populates="images")


class Order(Base):
    __tablename__ = 'Order'

    id = Column('ID', Integer, primary_key=True)
    order_number = Column('OrderNumber', String(64), nullable=False, unique=True)
    customer_id = Column('CustomerId', String(450), ForeignKey('Customer.Id'), nullable=False)
    supplier_id = Column('SupplierId', String(450), ForeignKey('Suppliers.Id'), nullable=False)
    sub_total = Column('SubTotal', Numeric(18, 2), nullable=False, default=0)
    delivery_fees = Column('DeliveryFees', Numeric(18, 2), nullable=False, default=0)
    discount = Column('Discount', Numeric(18, 2), nullable=False, default=0)
    notes = Column('Notes', Text)
    payment_method = Column('PaymentMethod', String(50), default='cash')
    status = Column('Status', Integer, nullable=False, default=int(OrderStatus.PENDING))
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime, default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="orders")
    supplier = relationship("Supplier", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")

    @property
    def live_items(self):
        return [item for item in self.items if not item.deleted]


class OrderItem(Base):
    __tablename__ = 'OrderItem'

    id = Column('ID', Integer, primary_key=True)
    order_id = Column('OrderId', Integer, ForeignKey('Order.ID'), nullable=False)
    product_id = Column('ProductId', Integer, ForeignKey('Products.ID'), nullable=False)
    quantity = Column('Quantity', Integer, nullable=False)
    deleted = Column('Deleted', Boolean, nullable=False, default=False)
    created_date = Column('CreatedDate', DateTime, nullable=False, default=func.now())
    updated_date = Column('UpdatedDate', DateTime)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
