"""
Tests for marker-guarded stock deduction.
"""
import unittest
from unittest.mock import patch

from inventory_reconciler.db.interface import eq
from inventory_reconciler.exceptions import ResolutionError, StoreError
from inventory_reconciler.core.line_items import RECONCILED_STAMP
from inventory_reconciler.services.catalog_service import Catalog, CatalogService
from inventory_reconciler.services.stock_deduction_service import (
    StockDeductionService, resolve_deductible_item, select_marker
)
from inventory_reconciler.tests.helpers import SINCE, make_store, seed_locations, settings


class TestSelectMarker(unittest.TestCase):
    def test_prefers_matching_sku(self):
        candidates = [
            {'id': 1, 'sku': None, 'notes': ''},
            {'id': 2, 'sku': 'ABC', 'notes': ''},
        ]
        self.assertEqual(select_marker(candidates, 'abc')['id'], 2)

    def test_falls_back_to_first_unassigned(self):
        candidates = [
            {'id': 1, 'sku': 'other', 'notes': ''},
            {'id': 2, 'sku': '', 'notes': ''},
            {'id': 3, 'sku': None, 'notes': ''},
        ]
        self.assertEqual(select_marker(candidates, 'abc')['id'], 2)

    def test_none_when_only_other_skus(self):
        self.assertIsNone(select_marker([{'id': 1, 'sku': 'other'}], 'abc'))


class TestStockDeduction(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.store = make_store()
        seed_locations(self.store)
        self.store.insert('products', [{'id': 1, 'Sku': 'TEE'}, {'id': 2, 'Sku': 'MUG'}])
        self.store.insert('bundle', {'id': 1, 'name': 'GIFTBOX'})
        self.store.insert('client_inventory', {'id': 50, 'sku': 'MUG', 'client_id': 'c1'})
        self.store.insert('inventory_stock_levels', [
            {'id': 100, 'item_type': 'product', 'item_id': '1', 'location_id': 4, 'on_hand': 10, 'available': 10},
            {'id': 101, 'item_type': 'product', 'item_id': '1', 'location_id': 1, 'on_hand': 99, 'available': 99},
            {'id': 102, 'item_type': 'client_product', 'item_id': '50', 'location_id': 3, 'on_hand': 5, 'available': 5},
        ])

        catalog_service = CatalogService(self.store, settings(page_size=1000))
        self.service = StockDeductionService(
            self.store, catalog_service.load_catalog(), catalog_service.supply_location_ids()
        )

    def add_shipment(self, shipment_id, items, order_number='1001', voided=False):
        self.store.insert('shipments', {
            'id': shipment_id,
            'order_number': order_number,
            'shipment_items': items,
            'voided': voided,
            'created_at': '2026-10-18T12:00:00+00:00',
        })

    def add_marker(self, marker_id, shipment_id, sku=None, notes='Shipped', created_at='2026-10-18T12:00:00Z'):
        self.store.insert('inventory_movements', {
            'id': marker_id,
            'sku': sku,
            'reference_type': 'shipment',
            'reference_id': str(shipment_id),
            'reason': 'order_shipment',
            'notes': notes,
            'created_at': created_at,
        })

    def on_hand(self, stock_id):
        return self.store.select_one('inventory_stock_levels', 'on_hand', [eq('id', stock_id)])['on_hand']

    def notes(self, marker_id):
        return self.store.select_one('inventory_movements', 'notes, sku', [eq('id', marker_id)])

    def test_deducts_once_and_stamps_marker(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 3}])
        self.add_marker(500, 1)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['deducted'], 1)
        self.assertEqual(self.on_hand(100), 7)
        self.assertEqual(self.on_hand(101), 99)
        marker = self.notes(500)
        self.assertEqual(marker['notes'], f"Shipped | {RECONCILED_STAMP}")
        self.assertEqual(marker['sku'], 'tee')

    def test_second_run_is_a_no_op(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 3}])
        self.add_marker(500, 1)

        self.service.run(SINCE, settings())
        results = self.service.run(SINCE, settings())

        self.assertEqual(results['deducted'], 0)
        self.assertEqual(results['already_reconciled'], 1)
        self.assertEqual(self.on_hand(100), 7)
        self.assertEqual(self.notes(500)['notes'].count(RECONCILED_STAMP), 1)

    def test_no_marker_never_deducts(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 3}], order_number=None)

        for _ in range(3):
            results = self.service.run(SINCE, settings())
            self.assertEqual(results['no_marker'], 1)

        self.assertEqual(self.on_hand(100), 10)

    def test_legacy_marker_found_by_order_number(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 1}], order_number='A-77')
        self.store.insert('inventory_movements', {
            'id': 600, 'sku': None, 'reference_type': 'order', 'reference_id': 'x',
            'reason': 'order_shipment', 'notes': 'Shipped order A-77',
        })

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['deducted'], 1)
        self.assertIn(RECONCILED_STAMP, self.notes(600)['notes'])

    def test_each_sku_uses_its_own_marker(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 1}, {'sku': 'mug', 'quantity': 2}])
        self.add_marker(500, 1, sku='TEE', created_at='2026-10-18T12:00:00Z')
        self.add_marker(501, 1, sku=None, created_at='2026-10-18T11:00:00Z')

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['deducted'], 2)
        self.assertEqual(self.on_hand(100), 9)
        self.assertEqual(self.on_hand(102), 3)
        self.assertEqual(self.notes(501)['sku'], 'mug')

        results = self.service.run(SINCE, settings())
        self.assertEqual(results['deducted'], 0)
        self.assertEqual(results['already_reconciled'], 2)

    def test_insufficient_stock_skips_without_stamp(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 11}])
        self.add_marker(500, 1)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['insufficient_stock'], 1)
        self.assertEqual(self.on_hand(100), 10)
        self.assertEqual(self.notes(500)['notes'], 'Shipped')

    def test_bundle_sku_is_not_deducted(self):
        self.add_shipment(1, [{'sku': 'giftbox', 'quantity': 1}])
        self.add_marker(500, 1)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['unresolved'], 1)
        self.assertEqual(self.notes(500)['notes'], 'Shipped')

    def test_voided_shipments_are_ignored(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 1}], voided=True)
        self.add_marker(500, 1)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['shipments'], 0)
        self.assertEqual(self.on_hand(100), 10)

    def test_null_voided_counts_as_not_voided(self):
        self.store.insert('shipments', {
            'id': 1, 'order_number': '1', 'shipment_items': [{'sku': 'tee'}],
            'voided': None, 'created_at': '2026-10-18T12:00:00Z',
        })
        self.add_marker(500, 1)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['deducted'], 1)

    def test_malformed_payload_skips_shipment(self):
        self.add_shipment(1, 'not json at all')
        self.add_shipment(2, [{'sku': 'tee', 'quantity': 1}])
        self.add_marker(500, 2)

        results = self.service.run(SINCE, settings())

        self.assertEqual(results['malformed'], 1)
        self.assertEqual(results['deducted'], 1)

    def test_failed_stamp_is_reported(self):
        self.add_shipment(1, [{'sku': 'tee', 'quantity': 1}])
        self.add_marker(500, 1)
        original_update = self.store.update

        def failing_update(table, values, filters):
            if table == 'inventory_movements':
                raise StoreError("connection reset")
            return original_update(table, values, filters)

        with patch.object(self.store, 'update', side_effect=failing_update):
            with self.assertLogs('inventory_reconciler.services.stock_deduction_service', level='ERROR'):
                results = self.service.run(SINCE, settings())

        self.assertEqual(results['unstamped'], 1)
        self.assertEqual(self.on_hand(100), 9)

    def test_paging_visits_every_shipment(self):
        for shipment_id in range(1, 6):
            self.add_shipment(shipment_id, [{'sku': 'tee', 'quantity': 1}], order_number=str(shipment_id))
            self.add_marker(500 + shipment_id, shipment_id)

        results = self.service.run(SINCE, settings(page_size=2))

        self.assertEqual(results['shipments'], 5)
        self.assertEqual(self.on_hand(100), 5)


class TestResolveDeductibleItem(unittest.TestCase):
    def test_unknown_sku_raises(self):
        with self.assertRaises(ResolutionError):
            resolve_deductible_item('nothing', Catalog())


if __name__ == '__main__':
    unittest.main()
