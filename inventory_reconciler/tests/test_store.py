"""
Tests for the store implementations and backend selection.
"""
import unittest
from unittest.mock import MagicMock, patch

from inventory_reconciler.db.connection import create_store
from inventory_reconciler.db.interface import (
    OrderBy, SqlAlchemyStore, SupabaseStore, asc, desc, eq, gte, ilike, in_, is_not_true, is_null, not_null
)
from inventory_reconciler.exceptions import ConfigError, StoreError
from inventory_reconciler.tests.helpers import make_store


class TestSqlAlchemyStore(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.store = make_store()
        self.store.insert('shipments', [
            {'id': 1, 'tracking_number': 'A', 'voided': True, 'create_date': '2026-10-01T00:00:00Z'},
            {'id': 2, 'tracking_number': 'B', 'voided': False, 'create_date': '2026-10-02T00:00:00Z'},
            {'id': 3, 'tracking_number': None, 'voided': None, 'create_date': '2026-10-03T00:00:00Z'},
        ])

    def ids(self, filters=(), order=(asc('id'),), **kwargs):
        return [row['id'] for row in self.store.select('shipments', 'id', filters, order, **kwargs)]

    def test_is_not_true_matches_false_and_null(self):
        self.assertEqual(self.ids([is_not_true('voided')]), [2, 3])

    def test_null_filters(self):
        self.assertEqual(self.ids([is_null('tracking_number')]), [3])
        self.assertEqual(self.ids([not_null('tracking_number')]), [1, 2])
        self.assertEqual(self.ids([eq('tracking_number', None)]), [3])

    def test_timestamp_filters_and_ordering(self):
        self.assertEqual(self.ids([gte('create_date', '2026-10-02T00:00:00+00:00')], [desc('create_date')]), [3, 2])

    def test_in_and_ilike(self):
        self.assertEqual(self.ids([in_('tracking_number', ['A', 'B'])]), [1, 2])
        self.assertEqual(self.ids([ilike('tracking_number', 'a')]), [1])

    def test_offset_and_limit(self):
        self.assertEqual(self.ids(offset=1, limit=1), [2])

    def test_timestamps_returned_as_iso_strings(self):
        row = self.store.select_one('shipments', 'create_date', [eq('id', 1)])
        self.assertEqual(row['create_date'], '2026-10-01T00:00:00+00:00')

    def test_update_returns_rowcount(self):
        count = self.store.update('shipments', {'carrier_code': 'ups'}, [is_not_true('voided')])
        self.assertEqual(count, 2)

    def test_unknown_table_and_column(self):
        with self.assertRaises(StoreError):
            self.store.select('nope')
        with self.assertRaises(StoreError):
            self.store.select('shipments', 'id, not_a_column')

    def test_database_errors_are_wrapped(self):
        with self.assertRaises(StoreError):
            self.store.insert('shipments', {'id': 1, 'tracking_number': 'dup'})

    def test_upsert_without_unique_constraint_raises_store_error(self):
        with self.assertRaises(StoreError):
            self.store.upsert(
                'inventory_alerts',
                {'client_id': 'c1', 'item_type': 'client_product', 'alert_type': 'purchase', 'message': 'abc'},
                on_conflict=('client_id', 'item_type', 'alert_type', 'message')
            )

    def test_upsert_with_only_key_columns_does_nothing_on_conflict(self):
        self.store.upsert('shipments', {'id': 2}, on_conflict=('id',))

        self.assertEqual(self.ids(), [1, 2, 3])
        self.assertEqual(self.store.select_one('shipments', 'tracking_number', [eq('id', 2)])['tracking_number'], 'B')

    def test_nulls_last_ordering(self):
        self.assertEqual(self.ids(order=[asc('tracking_number')]), [3, 1, 2])
        self.assertEqual(self.ids(order=[OrderBy('tracking_number', False, True)]), [1, 2, 3])

    def test_upsert_on_primary_key(self):
        self.store.upsert('shipments', {'id': 2, 'carrier_code': 'fedex'}, on_conflict=('id',))
        self.store.upsert('shipments', {'id': 9, 'carrier_code': 'ups'}, on_conflict=('id',))

        self.assertEqual(self.store.select_one('shipments', 'carrier_code', [eq('id', 2)])['carrier_code'], 'fedex')
        self.assertEqual(self.ids(), [1, 2, 3, 9])


class TestSupabaseStore(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.client = MagicMock()
        self.query = MagicMock()
        self.client.table.return_value.select.return_value = self.query
        self.client.table.return_value.update.return_value = self.query
        # Builder methods return the same builder so calls can be chained.
        for method in ('eq', 'neq', 'gte', 'lte', 'in_', 'is_', 'ilike', 'order', 'range', 'limit'):
            getattr(self.query, method).return_value = self.query
        self.query.not_.is_.return_value = self.query
        self.query.execute.return_value = MagicMock(data=[{'id': 1}])
        self.store = SupabaseStore(self.client)

    def test_select_translates_filters(self):
        rows = self.store.select(
            'shipments',
            'id, voided',
            [eq('order_number', '1001'), eq('order_id', None), is_not_true('voided'),
             not_null('tracking_number'), in_('id', [1, 2]), ilike('order_status', 'shipped')],
            order=[desc('created_at')],
            offset=500,
            limit=500
        )

        self.assertEqual(rows, [{'id': 1}])
        self.client.table.assert_called_with('shipments')
        self.client.table.return_value.select.assert_called_with('id, voided')
        self.query.eq.assert_called_once_with('order_number', '1001')
        self.query.is_.assert_called_once_with('order_id', 'null')
        self.query.not_.is_.assert_any_call('voided', 'true')
        self.query.not_.is_.assert_any_call('tracking_number', 'null')
        self.query.in_.assert_called_once_with('id', [1, 2])
        self.query.ilike.assert_called_once_with('order_status', 'shipped')
        self.query.order.assert_called_once_with('created_at', desc=True)
        self.query.range.assert_called_once_with(500, 999)

    def test_nulls_last_ordering(self):
        self.store.select('inventory_stock_levels', order=[desc('available', nulls_last=True)])
        self.query.order.assert_called_once_with('available', desc=True, nullsfirst=False)

    def test_limit_without_offset(self):
        self.store.select_one('shipments', 'id', [eq('id', 1)])
        self.query.limit.assert_called_once_with(1)
        self.query.range.assert_not_called()

    def test_upsert_joins_conflict_columns(self):
        self.store.upsert('inventory_alerts', {'message': 'abc'}, on_conflict=('client_id', 'message'))
        self.client.table.return_value.upsert.assert_called_once_with(
            {'message': 'abc'}, on_conflict='client_id,message'
        )

    def test_update_returns_row_count(self):
        self.query.execute.return_value = MagicMock(data=[{'id': 1}, {'id': 2}])
        self.assertEqual(self.store.update('orders', {'tracking_number': 'T'}, [eq('order_id', 'A')]), 2)

    def test_client_errors_become_store_errors(self):
        self.query.execute.side_effect = RuntimeError("timeout")
        with self.assertRaises(StoreError) as ctx:
            self.store.select('shipments')
        self.assertIn('timeout', str(ctx.exception))

    def test_empty_result(self):
        self.query.execute.return_value = MagicMock(data=None)
        self.assertEqual(self.store.select('shipments'), [])


class TestCreateStore(unittest.TestCase):
    def test_missing_supabase_credentials(self):
        config = MagicMock()
        config.db_type = 'supabase'
        config.supabase_credentials = {'url': '', 'key': ''}
        with self.assertRaises(ConfigError) as ctx:
            create_store(config)
        self.assertEqual(ctx.exception.code, 'MISSING_CREDENTIALS')

    def test_unknown_backend(self):
        config = MagicMock()
        config.db_type = 'oracle'
        with self.assertRaises(ConfigError):
            create_store(config)

    @patch('inventory_reconciler.db.connection.create_client')
    def test_supabase_store_built_from_credentials(self, mock_create_client):
        config = MagicMock()
        config.db_type = 'supabase'
        config.supabase_credentials = {'url': 'https://x.supabase.co', 'key': 'secret'}

        store = create_store(config)

        self.assertIsInstance(store, SupabaseStore)
        mock_create_client.assert_called_once_with('https://x.supabase.co', 'secret')

    def test_postgresql_requires_url(self):
        config = MagicMock()
        config.db_type = 'postgresql'
        config.database_url = ''
        with self.assertRaises(ConfigError):
            create_store(config)

    @patch('inventory_reconciler.db.connection.create_engine')
    def test_postgresql_store(self, mock_create_engine):
        config = MagicMock()
        config.db_type = 'postgresql'
        config.database_url = 'postgresql://u:p@localhost/db'
        config.get_int.return_value = 5
        config.get_boolean.return_value = False

        store = create_store(config)

        self.assertIsInstance(store, SqlAlchemyStore)
        self.assertEqual(mock_create_engine.call_args[0][0], 'postgresql://u:p@localhost/db')


if __name__ == '__main__':
    unittest.main()
