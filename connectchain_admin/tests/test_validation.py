"""
Tests for scalar coercion of request values.
"""
import unittest
from datetime import datetime
from decimal import Decimal

from connectchain_admin.exceptions import ValidationError
from connectchain_admin.utils.validation import (
    to_decimal, to_int, to_bool, to_datetime, to_required_str, require_fields, reject_unknown_fields
)


class TestNumericCoercion(unittest.TestCase):
    def test_string_and_number_prices_are_identical(self):
        """Form-encoded and JSON prices store the same value."""
        self.assertEqual(to_decimal("29.99", 'Price'), to_decimal(29.99, 'Price'))
        self.assertEqual(to_decimal("29.99", 'Price'), Decimal('29.99'))

    def test_price_is_quantized_to_cents(self):
        self.assertEqual(to_decimal("10.005", 'Price'), Decimal('10.01'))
        self.assertEqual(to_decimal(7, 'Price'), Decimal('7.00'))

    def test_non_numeric_price_is_rejected(self):
        for value in ("abc", "", "NaN", "Infinity", None, True):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    to_decimal(value, 'Price')

    def test_negative_price_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            to_decimal("-1", 'Price')
        self.assertIn('Price', ctx.exception.message)

    def test_price_beyond_column_precision_is_rejected(self):
        for value in ("1e30", "99999999999999999.99", 1e30):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    to_decimal(value, 'Price')

    def test_largest_storable_price_is_accepted(self):
        self.assertEqual(to_decimal("9999999999999999.99", 'Price'), Decimal("9999999999999999.99"))
        self.assertEqual(to_decimal("1e3", 'Price'), Decimal("1000.00"))

    def test_price_maximum_can_be_overridden(self):
        with self.assertRaises(ValidationError) as ctx:
            to_decimal("100", 'Total', maximum=Decimal("99.99"))
        self.assertIn('must not exceed', ctx.exception.message)

    def test_int_accepts_strings_and_integral_floats(self):
        self.assertEqual(to_int("15", 'Stock'), 15)
        self.assertEqual(to_int(15.0, 'Stock'), 15)
        self.assertEqual(to_int(" 3 ", 'Stock'), 3)

    def test_int_rejects_fractions_and_text(self):
        for value in ("1.5", 2.5, "ten", False, "+-5", "--5", "\u00b2", "1_000", "\u0663"):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    to_int(value, 'Stock')

    def test_int_minimum(self):
        with self.assertRaises(ValidationError):
            to_int("0", 'ID', minimum=1)
        self.assertEqual(to_int("-4", 'delta', minimum=None), -4)

    def test_int_beyond_column_range_is_rejected(self):
        self.assertEqual(to_int("2147483647", 'Stock'), 2147483647)
        for value in ("2147483648", 10 ** 20):
            with self.subTest(value=value):
                with self.assertRaises(ValidationError):
                    to_int(value, 'Stock')


class TestScalarCoercion(unittest.TestCase):
    def test_bool_flags(self):
        self.assertTrue(to_bool("true", 'inStock'))
        self.assertTrue(to_bool("1", 'inStock'))
        self.assertFalse(to_bool("off", 'inStock'))
        with self.assertRaises(ValidationError):
            to_bool("maybe", 'inStock')

    def test_datetime_parsing(self):
        self.assertEqual(to_datetime("2024-03-01", 'dateFrom'), datetime(2024, 3, 1))
        self.assertEqual(to_datetime("2024-03-01T10:00:00Z", 'dateFrom'), datetime(2024, 3, 1, 10, 0))
        self.assertEqual(to_datetime("2024-03-01T12:00:00+02:00", 'dateFrom'), datetime(2024, 3, 1, 10, 0))
        with self.assertRaises(ValidationError):
            to_datetime("01/03/2024", 'dateFrom')

    def test_required_string(self):
        self.assertEqual(to_required_str("Color", 'Key'), "Color")
        with self.assertRaises(ValidationError):
            to_required_str("   ", 'Key')
        with self.assertRaises(ValidationError):
            to_required_str("x" * 256, 'Key')

    def test_require_fields_lists_missing(self):
        with self.assertRaises(ValidationError) as ctx:
            require_fields({'Name': 'Lamp', 'Price': ''}, 'Name', 'Price', 'CategoryId')
        self.assertEqual(ctx.exception.details, {'missing': ['Price', 'CategoryId']})

    def test_reject_unknown_fields(self):
        reject_unknown_fields({'Key': 'a'}, {'Key', 'Value'}, 'attribute')
        with self.assertRaises(ValidationError) as ctx:
            reject_unknown_fields({'Key': 'a', 'Colour': 'b'}, {'Key', 'Value'}, 'attribute')
        self.assertIn('Colour', ctx.exception.message)


if __name__ == '__main__':
    unittest.main()
