"""
Tests for query parsing, predicate construction and pagination arithmetic.
"""
import unittest
from datetime import datetime

from sqlalchemy.dialects import sqlite

from connectchain_admin.core.filtering import (
    MAX_PAGE_SIZE, PageDescriptor, ProductCriteria, SortDescriptor,
    parse_page, parse_sort, parse_product_query, parse_category_query, parse_user_query,
    parse_order_query, build_product_predicate, build_order_predicate, calculate_pagination,
    count_products, PRODUCT_SORT_FIELDS
)
from connectchain_admin.exceptions import ValidationError
from connectchain_admin.models import Product
from connectchain_admin.tests.fixtures import make_session, seed_catalog, add_product


def compiled(clause):
    return str(clause.compile(dialect=sqlite.dialect(), compile_kwargs={'literal_binds': True}))


class TestQueryParsing(unittest.TestCase):
    def test_identical_parameters_give_identical_output(self):
        params = {'search': 'head', 'category': '1', 'inStock': 'true', 'page': '2',
                  'limit': '5', 'sort': 'price', 'order': 'asc'}

        first = parse_product_query(dict(params))
        second = parse_product_query(dict(params))

        self.assertEqual(first, second)
        self.assertEqual(compiled(build_product_predicate(first[0])),
                         compiled(build_product_predicate(second[0])))

    def test_product_query_values(self):
        criteria, page, sort = parse_product_query({'category': '3', 'inStock': 'false',
                                                    'search': '  lamp ', 'page': '3'})
        self.assertEqual(criteria, ProductCriteria(search='lamp', category_id=3, in_stock=False))
        self.assertEqual(page, PageDescriptor(page=3, limit=20))
        self.assertEqual(page.offset, 40)
        self.assertEqual(sort, SortDescriptor(field='createdAt', order='desc'))

    def test_default_page_sizes_per_surface(self):
        self.assertEqual(parse_category_query({})[1].limit, 10)
        self.assertEqual(parse_user_query({}, 'suppliers')[1].limit, 20)
        self.assertEqual(parse_user_query({}, 'customers')[1].limit, 10)
        self.assertEqual(parse_order_query({})[1].limit, 10)

    def test_page_bounds(self):
        self.assertEqual(parse_page({'limit': str(MAX_PAGE_SIZE)}, 20).limit, MAX_PAGE_SIZE)
        for params in ({'limit': '101'}, {'limit': '0'}, {'page': '0'}, {'page': 'two'}):
            with self.subTest(params=params):
                with self.assertRaises(ValidationError):
                    parse_page(params, 20)

    def test_sort_is_allow_listed(self):
        self.assertEqual(parse_sort({'sort': 'name', 'order': 'ASC'}, PRODUCT_SORT_FIELDS, 'createdAt'),
                         SortDescriptor('name', 'asc'))
        with self.assertRaises(ValidationError):
            parse_sort({'sort': 'Price; DROP TABLE'}, PRODUCT_SORT_FIELDS, 'createdAt')
        with self.assertRaises(ValidationError):
            parse_sort({'order': 'sideways'}, PRODUCT_SORT_FIELDS, 'createdAt')

    def test_unknown_status_is_rejected(self):
        with self.assertRaises(ValidationError):
            parse_product_query({'status': 'archived'})
        with self.assertRaises(ValidationError):
            parse_user_query({'verificationStatus': 'rejected'}, 'customers')

    def test_order_status_accepts_code_or_label(self):
        self.assertEqual(parse_order_query({'status': '2'})[0].status, 2)
        self.assertEqual(parse_order_query({'status': 'shipped'})[0].status, 2)
        with self.assertRaises(ValidationError):
            parse_order_query({'status': '9'})

    def test_order_date_range(self):
        criteria = parse_order_query({'dateFrom': '2024-01-01', 'dateTo': '2024-01-31'})[0]
        self.assertEqual(criteria.date_from, datetime(2024, 1, 1))
        self.assertTrue(criteria.date_to_inclusive_day)

        criteria = parse_order_query({'dateTo': '2024-01-31T12:00:00'})[0]
        self.assertFalse(criteria.date_to_inclusive_day)

        with self.assertRaises(ValidationError):
            parse_order_query({'dateFrom': '2024-02-01', 'dateTo': '2024-01-01'})

    def test_date_only_upper_bound_covers_whole_day(self):
        criteria = parse_order_query({'dateTo': '2024-01-31'})[0]
        self.assertIn("'2024-02-01 00:00:00.000000'", compiled(build_order_predicate(criteria)))


class TestProductPredicate(unittest.TestCase):
    def setUp(self):
        self.session = make_session()
        seed_catalog(self.session)
        add_product(self.session, 101, 'Desk Lamp', stock=0)
        add_product(self.session, 102, 'Floor Lamp', stock=None)
        add_product(self.session, 103, 'Retired Lamp', stock=8, deleted=True)
        add_product(self.session, 104, 'Paper 100% recycled', category_id=2, stock=3)

    def tearDown(self):
        self.session.close()

    def _ids(self, criteria):
        rows = self.session.query(Product.id).filter(build_product_predicate(criteria)).all()
        return sorted(row.id for row in rows)

    def test_default_excludes_deleted(self):
        self.assertEqual(self._ids(ProductCriteria()), [42, 101, 102, 104])

    def test_status_filters(self):
        self.assertEqual(self._ids(ProductCriteria(status='active')), [42, 104])
        self.assertEqual(self._ids(ProductCriteria(status='out_of_stock')), [101, 102])
        self.assertEqual(self._ids(ProductCriteria(status='inactive')), [103])
        self.assertEqual(self._ids(ProductCriteria(status='all')), [42, 101, 102, 103, 104])

    def test_in_stock_means_positive_stock(self):
        self.assertEqual(self._ids(ProductCriteria(in_stock=True)), [42, 104])
        self.assertEqual(self._ids(ProductCriteria(in_stock=False)), [101, 102])

    def test_search_is_case_insensitive_and_escapes_wildcards(self):
        self.assertEqual(self._ids(ProductCriteria(search='LAMP')), [101, 102])
        self.assertEqual(self._ids(ProductCriteria(search='100%')), [104])
        self.assertEqual(self._ids(ProductCriteria(search='%')), [104])
        self.assertEqual(self._ids(ProductCriteria(search='headph42')), [42])

    def test_count_uses_same_predicate(self):
        criteria = ProductCriteria(category_id=1, status='out_of_stock')
        self.assertEqual(count_products(self.session, criteria), len(self._ids(criteria)))


class TestPagination(unittest.TestCase):
    def test_pages_round_up(self):
        pagination = calculate_pagination(PageDescriptor(page=2, limit=10), 25)
        self.assertEqual(pagination, {
            'page': 2, 'limit': 10, 'total': 25, 'pages': 3, 'hasNext': True, 'hasPrev': True
        })

    def test_last_and_empty_pages(self):
        self.assertFalse(calculate_pagination(PageDescriptor(page=3, limit=10), 25)['hasNext'])
        empty = calculate_pagination(PageDescriptor(page=1, limit=10), 0)
        self.assertEqual(empty['pages'], 0)
        self.assertFalse(empty['hasNext'])
        self.assertFalse(empty['hasPrev'])


if __name__ == '__main__':
    unittest.main()
