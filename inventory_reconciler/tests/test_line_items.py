"""
Tests for shipment line item normalization and the reconciliation stamp.
"""
import json
import unittest

from inventory_reconciler.core.line_items import (
    RECONCILED_STAMP, LineItem, PayloadShape, detect_shape, is_reconciled,
    normalize_line_items, quantities_by_sku, stamp_notes
)
from inventory_reconciler.exceptions import PayloadError


class TestNormalizeLineItems(unittest.TestCase):
    def test_plain_list(self):
        items = normalize_line_items([{'sku': 'ABC', 'quantity': 2}])
        self.assertEqual(items, [LineItem('abc', 2)])

    def test_items_object(self):
        items = normalize_line_items({'items': [{'SKU': 'Abc', 'Quantity': 3}]})
        self.assertEqual(items, [LineItem('abc', 3)])

    def test_pascal_object_with_nested_product(self):
        items = normalize_line_items({'ShipmentItems': [{'product': {'sku': 'X 1'}, 'qty': '4'}]})
        self.assertEqual(items, [LineItem('x1', 4)])

    def test_json_string(self):
        payload = json.dumps({'items': [{'sku': 'abc'}]})
        self.assertEqual(normalize_line_items(payload), [LineItem('abc', 1)])

    def test_empty_payloads(self):
        self.assertEqual(normalize_line_items(None), [])
        self.assertEqual(normalize_line_items(''), [])
        self.assertEqual(normalize_line_items({}), [])
        self.assertEqual(normalize_line_items([]), [])

    def test_drops_invalid_items(self):
        items = normalize_line_items([
            {'sku': '', 'quantity': 1},
            {'sku': 'a', 'quantity': 0},
            {'sku': 'b', 'quantity': -2},
            {'sku': 'c', 'quantity': 'lots'},
            'not-a-dict',
            {'sku': 'd', 'quantity': 1.5},
        ])
        self.assertEqual(items, [LineItem('d', 1.5)])

    def test_invalid_json_raises(self):
        with self.assertRaises(PayloadError):
            normalize_line_items('{not json')

    def test_unknown_shape_raises(self):
        with self.assertRaises(PayloadError):
            normalize_line_items(42)
        with self.assertRaises(PayloadError):
            normalize_line_items({'items': 'abc'})

    def test_detect_shape(self):
        self.assertIs(detect_shape([]), PayloadShape.LIST)
        self.assertIs(detect_shape({'items': []}), PayloadShape.ITEMS_OBJECT)
        self.assertIs(detect_shape({'ShipmentItems': []}), PayloadShape.PASCAL_OBJECT)
        self.assertIs(detect_shape(None), PayloadShape.EMPTY)

    def test_quantities_summed_per_sku(self):
        totals = quantities_by_sku([LineItem('a', 1), LineItem('b', 2), LineItem('a', 3)])
        self.assertEqual(totals, {'a': 4, 'b': 2})


class TestReconciledStamp(unittest.TestCase):
    def test_stamp_appends(self):
        self.assertEqual(stamp_notes('Order #100'), f"Order #100 | {RECONCILED_STAMP}")

    def test_stamp_on_empty_notes(self):
        self.assertEqual(stamp_notes(None), RECONCILED_STAMP)
        self.assertEqual(stamp_notes(''), RECONCILED_STAMP)

    def test_is_reconciled(self):
        self.assertTrue(is_reconciled(stamp_notes('x')))
        self.assertFalse(is_reconciled('Order #100'))
        self.assertFalse(is_reconciled(None))


if __name__ == '__main__':
    unittest.main()
