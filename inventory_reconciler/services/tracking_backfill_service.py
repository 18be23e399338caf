# inventory_reconciler/services/tracking_backfill_service.py
"""Backfill tracking numbers onto shipped orders that never received one.

Sources are tried in a fixed order: ShipStation events, ShipEngine events, then
the label ledger. Each source is a strategy object so it can be tested alone.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from inventory_reconciler.config import JobSettings
from inventory_reconciler.core.shipment_merge import clean_tracking
from inventory_reconciler.db.interface import (
    StoreInterface, desc, eq, gte, ilike, is_not_true, is_null, not_null
)
from inventory_reconciler.exceptions import StoreError
from inventory_reconciler.utils.date_utils import to_iso_or_null

logger = logging.getLogger(__name__)

BACKFILL_SOURCE = 'orders_fix_cron'
LEDGER_DATE_KEYS = ('ship_date', 'shipDate', 'label_date')


@dataclass(frozen=True)
class TrackingHit:
    tracking_number: str
    ship_date: Optional[str]
    source: str


class ShipStationLookup:
    """Newest usable ShipStation event by order id, then by order number."""

    name = 'shipstation'

    def __init__(self, store: StoreInterface):
        self.store = store

    def _newest(self, key_filter) -> Optional[Dict]:
        return self.store.select_one(
            'shipstation_events',
            'tracking_number, ship_date, create_date',
            [key_filter, is_not_true('voided'), is_not_true('is_return_label'), not_null('tracking_number')],
            order=[desc('create_date')]
        )

    def find(self, order: Dict) -> Optional[TrackingHit]:
        row = None
        if order.get('order_id'):
            row = self._newest(eq('order_id', str(order['order_id'])))
        if row is None and order.get('order_number'):
            row = self._newest(eq('order_number', str(order['order_number'])))
        return _event_hit(row, self.name)


class ShipEngineLookup:
    """Newest usable ShipEngine event by order number."""

    name = 'shipengine'

    def __init__(self, store: StoreInterface):
        self.store = store

    def find(self, order: Dict) -> Optional[TrackingHit]:
        if not order.get('order_number'):
            return None
        row = self.store.select_one(
            'shipengine_events',
            'tracking_number, ship_date, create_date',
            [
                eq('order_number', str(order['order_number'])),
                is_not_true('voided'),
                is_not_true('is_return_label'),
                not_null('tracking_number'),
            ],
            order=[desc('create_date')]
        )
        return _event_hit(row, self.name)


class LabelLedgerLookup:
    """Newest label ledger entry whose order reference is the order number."""

    name = 'label_ledger'

    def __init__(self, store: StoreInterface):
        self.store = store

    def find(self, order: Dict) -> Optional[TrackingHit]:
        if not order.get('order_number'):
            return None
        row = self.store.select_one(
            'label_ledger',
            'tracking_number, raw_payload, raw_response, created_at',
            [eq('order_ref', str(order['order_number'])), not_null('tracking_number')],
            order=[desc('created_at')]
        )
        if row is None:
            return None
        tracking = clean_tracking(row.get('tracking_number'))
        if not tracking:
            return None
        ship_date = (
            ledger_ship_date(row.get('raw_response'))
            or ledger_ship_date(row.get('raw_payload'))
            or to_iso_or_null(row.get('created_at'))
        )
        return TrackingHit(tracking, ship_date, self.name)


def _event_hit(row: Optional[Dict], source: str) -> Optional[TrackingHit]:
    if row is None:
        return None
    tracking = clean_tracking(row.get('tracking_number'))
    if not tracking:
        return None
    ship_date = to_iso_or_null(row.get('ship_date')) or to_iso_or_null(row.get('create_date'))
    return TrackingHit(tracking, ship_date, source)


def ledger_ship_date(payload: Any) -> Optional[str]:
    """Ship date recorded in a label response or request payload, if any."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    if not isinstance(payload, dict):
        return None
    for key in LEDGER_DATE_KEYS:
        value = to_iso_or_null(payload.get(key))
        if value:
            return value
    return None


def default_strategies(store: StoreInterface) -> List[Any]:
    return [ShipStationLookup(store), ShipEngineLookup(store), LabelLedgerLookup(store)]


class TrackingBackfillService:
    """Service that repairs shipped orders missing tracking and ship date."""

    def __init__(self, store: StoreInterface, settings: JobSettings, strategies: Optional[Sequence[Any]] = None):
        """Initialize the backfill service.

        Args:
            store: Store handle
            settings: Paging settings
            strategies: Lookup strategies in priority order
        """
        self.store = store
        self.settings = settings
        self.strategies = list(strategies) if strategies is not None else default_strategies(store)

    def find_tracking(self, order: Dict) -> Optional[TrackingHit]:
        """Return the first hit from the strategies, in order."""
        for strategy in self.strategies:
            hit = strategy.find(order)
            if hit is not None:
                return hit
        return None

    def ensure_shipment_exists(self, order: Dict, hit: TrackingHit) -> bool:
        """Insert a minimal shipment for the tracking number unless one exists.

        Returns:
            True if a shipment was inserted
        """
        existing = self.store.select_one('shipments', 'id', [eq('tracking_number', hit.tracking_number)])
        if existing is not None:
            return False
        self.store.insert('shipments', {
            'source': BACKFILL_SOURCE,
            'order_number': order.get('order_number'),
            'order_id': str(order['order_id']) if order.get('order_id') is not None else None,
            'tracking_number': hit.tracking_number,
            'ship_date': hit.ship_date,
            'status': 'active',
            'voided': False,
        })
        return True

    def fix_order(self, order: Dict, results: Dict[str, Any]) -> bool:
        """Look up and apply tracking for one order.

        Returns:
            True if the order was updated (and so left the candidate set)
        """
        try:
            hit = self.find_tracking(order)
        except StoreError as e:
            logger.error(f"Tracking lookup failed for order {order.get('order_number')}: {str(e)}")
            results['errors'] += 1
            return False

        if hit is None:
            results['not_found'] += 1
            return False

        try:
            self.store.update(
                'orders',
                {'tracking_number': hit.tracking_number, 'actual_ship_date': hit.ship_date},
                [eq('order_id', order['order_id'])]
            )
        except StoreError as e:
            logger.error(f"Failed to update order {order.get('order_number')}: {str(e)}")
            results['errors'] += 1
            return False

        results['fixed'] += 1
        results['by_source'][hit.source] = results['by_source'].get(hit.source, 0) + 1
        logger.debug(f"Order {order.get('order_number')} <- {hit.tracking_number} ({hit.source})")

        try:
            if self.ensure_shipment_exists(order, hit):
                results['shipments_created'] += 1
        except StoreError as e:
            logger.error(f"Failed to create shipment for {hit.tracking_number}: {str(e)}")
            results['errors'] += 1

        return True

    def run(self, since: str) -> Dict[str, Any]:
        """Backfill every candidate order dated since a timestamp.

        Fixed orders drop out of the filtered set, so the offset only advances
        past the orders that remain in it.

        Args:
            since: ISO-8601 lower bound on order_date

        Returns:
            Dictionary with counts
        """
        results = {
            'success': True,
            'scanned': 0,
            'fixed': 0,
            'not_found': 0,
            'shipments_created': 0,
            'errors': 0,
            'by_source': {},
        }
        page_size = self.settings.page_size
        offset = 0

        for _ in range(self.settings.max_pages):
            try:
                orders = self.store.select(
                    'orders',
                    'order_id, order_number, order_date',
                    [
                        ilike('order_status', 'shipped'),
                        is_null('tracking_number'),
                        is_null('actual_ship_date'),
                        gte('order_date', since),
                    ],
                    order=[desc('order_date'), desc('order_id')],
                    offset=offset,
                    limit=page_size
                )
            except StoreError as e:
                logger.error(f"Failed to fetch candidate orders: {str(e)}")
                results['success'] = False
                results['error'] = str(e)
                break

            if not orders:
                break

            left_set = 0
            for order in orders:
                results['scanned'] += 1
                if self.fix_order(order, results):
                    left_set += 1

            offset += len(orders) - left_set
            if len(orders) < page_size:
                break

        logger.info(
            f"Order tracking backfill: {results['fixed']} fixed of {results['scanned']} scanned"
        )
        return results
