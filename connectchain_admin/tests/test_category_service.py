"""
Tests for the category service.
"""
import itertools
import unittest

from connectchain_admin.core.filtering import count_category_products, parse_product_filters
from connectchain_admin.exceptions import ValidationError, NotFoundError, ConflictError, StateConflictError
from connectchain_admin.models import Category, Product
from connectchain_admin.services.category_service import CategoryService
from connectchain_admin.services.product_service import ProductService
from connectchain_admin.tests.fixtures import (
    make_session, seed_catalog, add_product, image_file, RecordingMediaStore, SUPPLIER_ID
)


class TestCategoryService(unittest.TestCase):
    def setUp(self):
        self.session = make_session()
        self.store = RecordingMediaStore()
        seed_catalog(self.session, self.store)
        add_product(self.session, 101, 'Desk Lamp', stock=0)
        add_product(self.session, 102, 'Smart Lamp', stock=7, supplier_id=SUPPLIER_ID)
        add_product(self.session, 103, 'Retired Speaker', stock=3, deleted=True)
        add_product(self.session, 104, 'Poetry Collection', category_id=2, stock=12)
        self.service = CategoryService(self.session, self.store)
        self.products = ProductService(self.session, self.store)

    def tearDown(self):
        self.session.close()

    def _category(self, items, category_id):
        return [item for item in items if item['id'] == category_id][0]

    def test_product_count_matches_product_listing(self):
        """A category's productCount equals the listing filtered to it, for every other filter held constant."""
        searches = [None, 'lamp', 'headphones']
        statuses = [None, 'active', 'inactive', 'out_of_stock', 'all']
        stock_flags = [None, 'true', 'false']
        suppliers = [None, SUPPLIER_ID]

        for search, status, in_stock, supplier in itertools.product(searches, statuses, stock_flags, suppliers):
            product_filters = {'search': search, 'status': status, 'inStock': in_stock, 'supplierId': supplier}
            category_params = {'productSearch': search, 'productStatus': status, 'inStock': in_stock,
                               'supplierId': supplier}
            categories = self.service.list_categories(
                {k: v for k, v in category_params.items() if v is not None}
            )['items']

            for category_id in (1, 2):
                with self.subTest(category=category_id, **product_filters):
                    params = {k: v for k, v in product_filters.items() if v is not None}
                    params.update({'category': str(category_id), 'limit': '100'})
                    listing = self.products.list_products(params)

                    count = self._category(categories, category_id)['productCount']
                    self.assertEqual(count, len(listing['items']))
                    self.assertEqual(count, listing['pagination']['totalItems'])

    def test_counts_through_shared_helper(self):
        criteria = parse_product_filters({'search': 'lamp'})
        self.assertEqual(count_category_products(self.session, 1, criteria), 2)
        self.assertEqual(self.service.get_category(1)['productCount'], 3)

    def test_duplicate_name_conflicts(self):
        """Creating 'Electronics' again fails and inserts nothing."""
        before = self.session.query(Category).count()

        with self.assertRaises(ConflictError):
            self.service.create_category({'name': 'Electronics'})
        with self.assertRaises(ConflictError):
            self.service.create_category({'name': ' electronics '})

        self.assertEqual(self.session.query(Category).count(), before)

    def test_deleted_category_name_can_be_reused(self):
        self.session.add(Category(id=9, name='Garden', deleted=True))
        self.session.commit()

        category = self.service.create_category({'name': 'Garden', 'description': 'Outdoor'})
        self.assertEqual(category['status'], 'active')
        self.assertEqual(category['productCount'], 0)

    def test_create_category_with_image(self):
        category = self.service.create_category({'name': 'Toys'}, image=image_file('toys.png'))
        self.assertTrue(category['image'].startswith('https://media.example.com/categories/category_'))

    def test_create_category_validation(self):
        with self.assertRaises(ValidationError):
            self.service.create_category({'description': 'No name'})
        with self.assertRaises(ValidationError):
            self.service.create_category({'name': 'Toys', 'status': 'hidden'})
        with self.assertRaises(ValidationError):
            self.service.create_category({'name': 'Toys', 'colour': 'red'})

    def test_update_category_name_conflict(self):
        with self.assertRaises(ConflictError):
            self.service.update_category(2, {'name': 'Electronics'})

        updated = self.service.update_category(2, {'name': 'Books & Magazines'})
        self.assertEqual(updated['name'], 'Books & Magazines')

    def test_status_change_cascades_to_products(self):
        category = self.service.update_category_status(1, 'inactive')

        self.assertEqual(category['status'], 'inactive')
        products = self.session.query(Product).filter(Product.category_id == 1).all()
        self.assertTrue(all(product.deleted for product in products))
        self.assertFalse(self.session.get(Product, 104).deleted)

        with self.assertRaises(StateConflictError) as ctx:
            self.service.update_category_status(1, 'inactive')
        self.assertEqual(ctx.exception.message, 'Category is already inactive')

        self.service.update_category_status(1, 'active')
        products = self.session.query(Product).filter(Product.category_id == 1).all()
        self.assertFalse(any(product.deleted for product in products))

    def test_delete_refused_while_products_reference_category(self):
        with self.assertRaises(StateConflictError):
            self.service.delete_category(2)
        self.assertFalse(self.session.get(Category, 2).deleted)

    def test_delete_empty_category_purges_image(self):
        created = self.service.create_category({'name': 'Toys'}, image=image_file('toys.png'))

        self.service.delete_category(created['id'])

        self.assertTrue(self.session.get(Category, created['id']).deleted)
        self.assertEqual(self.store.delete_calls, [self.session.get(Category, created['id']).image_storage_id])
        with self.assertRaises(NotFoundError):
            self.service.delete_category(created['id'])

    def test_category_products_listing(self):
        result = self.service.get_category_products(1, {'search': 'lamp', 'sort': 'name', 'order': 'asc'})

        self.assertEqual([item['name'] for item in result['items']], ['Desk Lamp', 'Smart Lamp'])
        self.assertEqual(result['items'][0]['status'], 'out_of_stock')
        self.assertEqual(result['pagination']['itemsPerPage'], 10)

        with self.assertRaises(NotFoundError):
            self.service.get_category_products(99, {})

    def test_replace_and_delete_category_image(self):
        first = self.service.upload_category_image(2, image_file('books.png'))
        first_storage_id = self.session.get(Category, 2).image_storage_id

        self.service.upload_category_image(2, image_file('books-v2.png'))
        self.assertEqual(self.store.delete_calls, [first_storage_id])

        cleared = self.service.delete_category_image(2)
        self.assertIsNone(cleared['image'])
        self.assertEqual(len(self.store.delete_calls), 2)
        self.assertTrue(first['image'])

        with self.assertRaises(NotFoundError):
            self.service.delete_category_image(2)


if __name__ == '__main__':
    unittest.main()
