"""
Shared test fixtures: an in-memory database, a seeded catalog and a media
store that records what it was asked to do.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from connectchain_admin.config import config
from connectchain_admin.db import build_engine
from connectchain_admin.exceptions import UploadError
from connectchain_admin.media import MediaStore, MediaUpload, StoredMedia
from connectchain_admin.models import (
    Base, User, Supplier, Customer, Category, Product, ProductAttribute, ProductVariant, ProductImage
)

# Failed media deletes must not sleep during tests
config.set('MEDIA', 'cleanup_backoff_seconds', 0)

SUPPLIER_ID = '3f2504e0-4f89-41d3-9a0c-0305e82c3301'
CUSTOMER_ID = '9b2d5c1e-7a4f-4c3b-8e21-5d6f7a8b9c02'
SEEDED_AT = datetime(2024, 1, 15, 9, 30)


def make_session():
    """Create a session bound to a fresh in-memory database."""
    engine = build_engine('sqlite://')
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)()


class RecordingMediaStore(MediaStore):
    """Media store keeping uploads in memory.

    Args:
        fail_upload_at: Zero-based upload index that raises UploadError
        failing_deletes: Number of delete calls that raise before succeeding
    """

    def __init__(self, fail_upload_at=None, failing_deletes=0):
        self.objects = {}
        self.upload_calls = 0
        self.delete_calls = []
        self.fail_upload_at = fail_upload_at
        self.failing_deletes = failing_deletes

    def upload(self, data, folder, suggested_id):
        index = self.upload_calls
        self.upload_calls += 1
        if self.fail_upload_at is not None and index == self.fail_upload_at:
            raise UploadError("storage unavailable")

        storage_id = f"{folder}/{suggested_id}"
        self.objects[storage_id] = data
        return StoredMedia(url=f"https://media.example.com/{storage_id}.jpg", storage_id=storage_id)

    def delete(self, storage_id):
        self.delete_calls.append(storage_id)
        if self.failing_deletes:
            self.failing_deletes -= 1
            raise ConnectionError("storage unavailable")
        return self.objects.pop(storage_id, None) is not None


def image_file(name='photo.jpg', data=b'\xff\xd8\xff\xe0fake-jpeg'):
    return MediaUpload(filename=name, data=data, content_type='image/jpeg')


def seed_catalog(session, store=None):
    """Seed users, two categories and product 42 with children.

    Product 42 lives in category 1 ('Electronics') and has attributes 7
    (Color: Blue) and 8 (Size: M), variants 11 and 12 and images 21 and 22.
    When a store is given, the seeded images are registered in it.
    """
    supplier_user = User(id=SUPPLIER_ID, name='Nile Traders', email='sales@niletraders.example',
                         phone_number='+20 100 555 0101', address='12 Port Said St, Cairo',
                         business_type='Electronics wholesale', email_confirmed=True,
                         lockout_enabled=False)
    customer_user = User(id=CUSTOMER_ID, name='Delta Retail', email='buyer@deltaretail.example',
                         phone_number='+20 100 555 0202', address='7 Corniche Rd, Alexandria',
                         business_type='Retail', email_confirmed=False, lockout_enabled=False)
    session.add_all([supplier_user, customer_user])
    session.add_all([Supplier(id=SUPPLIER_ID), Customer(id=CUSTOMER_ID)])

    session.add_all([
        Category(id=1, name='Electronics', description='Devices and accessories', deleted=False,
                 created_date=SEEDED_AT, updated_date=SEEDED_AT),
        Category(id=2, name='Books', description='Printed and digital books', deleted=False,
                 created_date=SEEDED_AT, updated_date=SEEDED_AT),
    ])

    session.add(Product(id=42, name='Wireless Headphones', description='Over-ear, noise cancelling',
                        price=Decimal('59.90'), stock=25, minimum_stock=5, sku='SKU-1-HEADPH42',
                        category_id=1, supplier_id=SUPPLIER_ID, deleted=False,
                        created_date=SEEDED_AT, updated_date=SEEDED_AT))
    session.add_all([
        ProductAttribute(id=7, product_id=42, key='Color', value='Blue', deleted=False,
                         created_date=SEEDED_AT),
        ProductAttribute(id=8, product_id=42, key='Size', value='M', deleted=False,
                         created_date=SEEDED_AT),
        ProductVariant(id=11, product_id=42, name='Black', type='color', custom_price=Decimal('61.00'),
                       stock=10, deleted=False, created_date=SEEDED_AT),
        ProductVariant(id=12, product_id=42, name='White', type='color', custom_price=Decimal('62.50'),
                       stock=4, deleted=False, created_date=SEEDED_AT),
        ProductImage(id=21, product_id=42, url='https://media.example.com/products/p42_a.jpg',
                     storage_id='products/p42_a', deleted=False, created_date=SEEDED_AT),
        ProductImage(id=22, product_id=42, url='https://media.example.com/products/p42_b.jpg',
                     storage_id='products/p42_b', deleted=False, created_date=SEEDED_AT),
    ])
    session.commit()

    if store is not None:
        store.objects['products/p42_a'] = b'a'
        store.objects['products/p42_b'] = b'b'


def add_product(session, product_id, name, category_id=1, stock=10, price='10.00', deleted=False,
                supplier_id=None):
    product = Product(id=product_id, name=name, price=Decimal(price), stock=stock, minimum_stock=0,
                      sku=f"SKU-{category_id}-T{product_id:06d}", category_id=category_id,
                      supplier_id=supplier_id, deleted=deleted, created_date=SEEDED_AT,
                      updated_date=SEEDED_AT)
    session.add(product)
    session.commit()
    return product


def snapshot_product(session, product_id):
    """Capture the persisted state of a product aggregate, deleted rows included."""
    session.expire_all()
    product = session.get(Product, product_id)
    return {
        'fields': (product.name, product.description, product.price, product.stock,
                   product.minimum_stock, product.category_id, product.supplier_id, product.deleted),
        'attributes': sorted((a.id, a.key, a.value, a.deleted) for a in product.attributes),
        'variants': sorted((v.id, v.name, v.type, v.custom_price, v.stock, v.deleted)
                           for v in product.variants),
        'images': sorted((i.id, i.url, i.storage_id, i.deleted) for i in product.images),
    }
