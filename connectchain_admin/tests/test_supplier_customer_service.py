"""
Tests for the supplier and customer account services.
"""
import unittest
from datetime import datetime

from connectchain_admin.exceptions import ValidationError, NotFoundError, ConflictError, StateConflictError
from connectchain_admin.models import User, Supplier, Customer
from connectchain_admin.services.customer_service import CustomerService, PERMANENT_LOCKOUT_END
from connectchain_admin.services.supplier_service import SupplierService
from connectchain_admin.tests.fixtures import (
    make_session, seed_catalog, add_product, SUPPLIER_ID, CUSTOMER_ID
)

SECOND_SUPPLIER_ID = 'c41e7f60-2b8d-4a11-9f3e-77aa10b2e5d4'


class TestSupplierService(unittest.TestCase):
    def setUp(self):
        self.session = make_session()
        seed_catalog(self.session)
        self.session.add(User(id=SECOND_SUPPLIER_ID, name='Aswan Paper Co', email='hello@aswanpaper.example',
                              business_type='Stationery', email_confirmed=False, lockout_enabled=True))
        self.session.add(Supplier(id=SECOND_SUPPLIER_ID))
        self.session.commit()
        add_product(self.session, 101, 'Desk Lamp', stock=0, supplier_id=SUPPLIER_ID)
        add_product(self.session, 102, 'Old Lamp', stock=4, supplier_id=SUPPLIER_ID, deleted=True)
        self.service = SupplierService(self.session)

    def tearDown(self):
        self.session.close()

    def test_list_suppliers_excludes_customers(self):
        result = self.service.list_suppliers({'sort': 'name', 'order': 'asc'})

        self.assertEqual([item['name'] for item in result['items']], ['Aswan Paper Co', 'Nile Traders'])
        self.assertEqual(result['pagination']['totalItems'], 2)
        self.assertEqual(result['pagination']['itemsPerPage'], 20)

    def test_list_suppliers_filters(self):
        banned = self.service.list_suppliers({'status': 'banned'})['items']
        self.assertEqual([item['id'] for item in banned], [SECOND_SUPPLIER_ID])

        verified = self.service.list_suppliers({'verificationStatus': 'verified'})['items']
        self.assertEqual([item['id'] for item in verified], [SUPPLIER_ID])

        found = self.service.list_suppliers({'search': 'ASWANPAPER'})['items']
        self.assertEqual(len(found), 1)

    def test_get_supplier_maps_profile(self):
        supplier = self.service.get_supplier(SUPPLIER_ID)

        self.assertEqual(supplier['status'], 'active')
        self.assertEqual(supplier['verificationStatus'], 'verified')
        self.assertEqual(supplier['categories'], 'Electronics wholesale')
        self.assertEqual(supplier['contactPerson'], 'Nile Traders')
        # Product 42 and the lamp; the deleted lamp is not counted
        self.assertEqual(supplier['productCount'], 2)

        with self.assertRaises(NotFoundError):
            self.service.get_supplier(CUSTOMER_ID)

    def test_supplier_products(self):
        result = self.service.get_supplier_products(SUPPLIER_ID, {'inStock': 'true'})
        self.assertEqual([item['id'] for item in result['items']], [42])

        result = self.service.get_supplier_products(SUPPLIER_ID, {'status': 'all', 'sort': 'name',
                                                                 'order': 'asc'})
        self.assertEqual([item['name'] for item in result['items']],
                         ['Desk Lamp', 'Old Lamp', 'Wireless Headphones'])

    def test_verification_status(self):
        supplier = self.service.update_verification_status(SECOND_SUPPLIER_ID, 'verified')
        self.assertEqual(supplier['verificationStatus'], 'verified')

        with self.assertRaises(StateConflictError):
            self.service.update_verification_status(SECOND_SUPPLIER_ID, 'verified')
        with self.assertRaises(ValidationError):
            self.service.update_verification_status(SECOND_SUPPLIER_ID, 'rejected')

    def test_ban_and_unban(self):
        before = datetime.utcnow()
        supplier = self.service.ban_supplier(SUPPLIER_ID)
        self.assertEqual(supplier['status'], 'banned')

        user = self.session.get(User, SUPPLIER_ID)
        self.assertTrue(user.lockout_enabled)
        self.assertGreaterEqual((user.lockout_end - before).days, 364)

        with self.assertRaises(StateConflictError):
            self.service.ban_supplier(SUPPLIER_ID)

        self.assertEqual(self.service.unban_supplier(SUPPLIER_ID)['status'], 'active')
        self.assertIsNone(self.session.get(User, SUPPLIER_ID).lockout_end)

        with self.assertRaises(StateConflictError):
            self.service.unban_supplier(SUPPLIER_ID)


class TestCustomerService(unittest.TestCase):
    def setUp(self):
        self.session = make_session()
        seed_catalog(self.session)
        self.service = CustomerService(self.session)

    def tearDown(self):
        self.session.close()

    def test_list_customers(self):
        result = self.service.list_customers({})

        self.assertEqual(len(result['items']), 1)
        customer = result['items'][0]
        self.assertEqual(customer['id'], CUSTOMER_ID)
        self.assertEqual(customer['type'], 'customer')
        self.assertEqual(customer['verificationStatus'], 'pending')
        self.assertEqual(result['pagination']['itemsPerPage'], 10)

        self.assertEqual(self.service.list_customers({'status': 'banned'})['items'], [])

    def test_get_customer(self):
        self.assertEqual(self.service.get_customer(CUSTOMER_ID)['businessType'], 'Retail')
        with self.assertRaises(NotFoundError):
            self.service.get_customer(SUPPLIER_ID)

    def test_update_customer_profile(self):
        customer = self.service.update_customer(CUSTOMER_ID, {
            'PhoneNumber': '+20 100 555 0303',
            'Address': '3 Nile St, Giza',
            'verificationStatus': 'verified',
        })

        self.assertEqual(customer['phone'], '+20 100 555 0303')
        self.assertEqual(customer['address'], '3 Nile St, Giza')
        self.assertEqual(customer['verificationStatus'], 'verified')
        self.assertEqual(customer['name'], 'Delta Retail')

    def test_update_customer_email_conflict(self):
        with self.assertRaises(ConflictError):
            self.service.update_customer(CUSTOMER_ID, {'Email': 'SALES@niletraders.example'})

        customer = self.service.update_customer(CUSTOMER_ID, {'Email': 'orders@deltaretail.example'})
        self.assertEqual(customer['email'], 'orders@deltaretail.example')

    def test_update_customer_rejects_bad_input_without_changes(self):
        for payload in ({'Email': 'not-an-email'}, {'Nickname': 'DR'},
                        {'Name': 'Delta', 'verificationStatus': 'approved'}):
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    self.service.update_customer(CUSTOMER_ID, payload)

        self.session.expire_all()
        self.assertEqual(self.session.get(User, CUSTOMER_ID).name, 'Delta Retail')

    def test_customer_status(self):
        customer = self.service.update_customer_status(CUSTOMER_ID, 'banned')
        self.assertEqual(customer['status'], 'banned')
        self.assertEqual(self.session.get(User, CUSTOMER_ID).lockout_end, PERMANENT_LOCKOUT_END)

        with self.assertRaises(StateConflictError):
            self.service.update_customer_status(CUSTOMER_ID, 'banned')

        customer = self.service.update_customer_status(CUSTOMER_ID, 'active')
        self.assertEqual(customer['status'], 'active')

        with self.assertRaises(ValidationError):
            self.service.update_customer_status(CUSTOMER_ID, 'suspended')

    def test_customer_without_profile_is_not_found(self):
        self.session.add(User(id='plain-user', name='Visitor', email='visitor@example.com'))
        self.session.commit()
        self.assertIsNone(self.session.get(Customer, 'plain-user'))

        with self.assertRaises(NotFoundError):
            self.service.update_customer_status('plain-user', 'banned')


if __name__ == '__main__':
    unittest.main()
