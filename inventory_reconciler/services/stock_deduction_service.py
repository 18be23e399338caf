# inventory_reconciler/services/stock_deduction_service.py
"""Compensating stock deductions for shipped line items.

Each (shipment, SKU) pair is deducted at most once. The guard is an existing
``inventory_movements`` row, the marker, whose notes receive RECONCILED_STAMP once
stock has moved. Lines without a marker are never deducted.

The stock decrement and the marker stamp are two separate writes. If the process
dies between them the deduction is left unmarked and will not be repeated or
reverted automatically; that case is logged at ERROR for an operator.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from inventory_reconciler.config import JobSettings
from inventory_reconciler.core.line_items import (
    is_reconciled, normalize_line_items, quantities_by_sku, stamp_notes
)
from inventory_reconciler.core.sku_resolver import (
    MATCH_CLIENT_PRODUCT, MATCH_PRODUCT, normalize_sku, resolve_sku
)
from inventory_reconciler.db.interface import (
    StoreInterface, asc, desc, eq, gte, ilike, in_, is_not_true
)
from inventory_reconciler.exceptions import PayloadError, ResolutionError, StoreError
from inventory_reconciler.services.catalog_service import Catalog
from inventory_reconciler.utils.date_utils import utc_now_iso
from inventory_reconciler.utils.pagination import iter_pages

logger = logging.getLogger(__name__)

MOVEMENTS_TABLE = 'inventory_movements'
STOCK_TABLE = 'inventory_stock_levels'
MARKER_CANDIDATE_LIMIT = 50


@dataclass(frozen=True)
class DeductibleItem:
    item_type: str
    item_id: str


def resolve_deductible_item(sku: str, catalog: Catalog) -> DeductibleItem:
    """Resolve a SKU to the stock identity a deduction applies to.

    Raises:
        ResolutionError: If the SKU is not a client product or product
    """
    resolution = resolve_sku(sku, catalog.product_map, catalog.bundle_map, catalog.client_sku_map)
    if resolution.match_type not in (MATCH_CLIENT_PRODUCT, MATCH_PRODUCT):
        raise ResolutionError(f"SKU {sku} does not resolve to a stocked item", details={'sku': sku})

    item_id = (resolution.entity or {}).get('id')
    if item_id is None or str(item_id) == '':
        raise ResolutionError(f"Catalog row for {sku} has no id", details={'sku': sku})
    return DeductibleItem(resolution.match_type, str(item_id))


def select_marker(candidates: List[Dict[str, Any]], sku: str) -> Optional[Dict[str, Any]]:
    """Pick the movement that guards a SKU's deduction.

    A movement already tied to the SKU wins; otherwise the first movement with no
    SKU yet. Movements tied to another SKU belong to that SKU's deduction.
    """
    unassigned = None
    for movement in candidates:
        movement_sku = normalize_sku(movement.get('sku'))
        if movement_sku == sku:
            return movement
        if not movement_sku and unassigned is None:
            unassigned = movement
    return unassigned


class StockDeductionService:
    """Service that deducts shipped quantities from Batch/Production stock."""

    def __init__(self, store: StoreInterface, catalog: Catalog, supply_location_ids: List[Any]):
        """Initialize the deduction service.

        Args:
            store: Store handle
            catalog: Catalog maps for SKU resolution
            supply_location_ids: Ids of Batch and Production locations
        """
        self.store = store
        self.catalog = catalog
        self.supply_location_ids = list(supply_location_ids)

    def find_marker(self, shipment: Dict[str, Any], sku: str) -> Optional[Dict[str, Any]]:
        """Locate the idempotency marker for one shipment line.

        Movements referencing the shipment are preferred; legacy movements are
        matched by an order number in their notes.

        Raises:
            StoreError: If the lookup fails
        """
        by_reference = self.store.select(
            MOVEMENTS_TABLE,
            'id, sku, notes',
            [eq('reference_type', 'shipment'), eq('reference_id', str(shipment['id']))],
            order=[desc('created_at')],
            limit=MARKER_CANDIDATE_LIMIT
        )
        if by_reference:
            return select_marker(by_reference, sku)

        order_number = shipment.get('order_number')
        if not order_number:
            return None

        by_order_note = self.store.select(
            MOVEMENTS_TABLE,
            'id, sku, notes',
            [eq('reason', 'order_shipment'), ilike('notes', f"%{order_number}%")],
            order=[desc('created_at')],
            limit=MARKER_CANDIDATE_LIMIT
        )
        return select_marker(by_order_note, sku)

    def find_supply_row(self, item: DeductibleItem) -> Optional[Dict[str, Any]]:
        """The Batch/Production stock row with the most availability for an item."""
        if not self.supply_location_ids:
            return None
        return self.store.select_one(
            STOCK_TABLE,
            'id, location_id, on_hand, available',
            [
                eq('item_type', item.item_type),
                eq('item_id', item.item_id),
                in_('location_id', self.supply_location_ids),
            ],
            order=[desc('available', nulls_last=True)]
        )

    def reconcile_line(self, shipment: Dict[str, Any], sku: str, quantity: float) -> str:
        """Deduct one shipment line if it has an unstamped marker and enough supply.

        Returns:
            Outcome: 'deducted', 'no_marker', 'already_reconciled', 'unresolved',
            'insufficient_stock' or 'unstamped'

        Raises:
            StoreError: If a lookup or the stock update fails
        """
        marker = self.find_marker(shipment, sku)
        if marker is None:
            logger.warning(
                f"No movement marker for shipment {shipment['id']} "
                f"{shipment.get('order_number') or ''} sku {sku}; skipping"
            )
            return 'no_marker'

        if is_reconciled(marker.get('notes')):
            return 'already_reconciled'

        try:
            item = resolve_deductible_item(sku, self.catalog)
        except ResolutionError as e:
            logger.warning(f"Unresolved SKU for shipment {shipment['id']}: {e.message}")
            return 'unresolved'

        stock = self.find_supply_row(item)
        available = None
        if stock is not None:
            available = stock.get('available')
            if available is None:
                available = stock.get('on_hand') or 0
        if stock is None or available < quantity:
            logger.warning(
                f"Insufficient Batch/Production stock for {sku} (need {quantity}) "
                f"on shipment {shipment['id']}"
            )
            return 'insufficient_stock'

        new_on_hand = (stock.get('on_hand') or 0) - quantity
        self.store.update(
            STOCK_TABLE,
            {'on_hand': new_on_hand, 'updated_at': utc_now_iso()},
            [eq('id', stock['id'])]
        )

        marker_update = {'notes': stamp_notes(marker.get('notes'))}
        if not marker.get('sku'):
            marker_update['sku'] = sku
        try:
            self.store.update(MOVEMENTS_TABLE, marker_update, [eq('id', marker['id'])])
        except StoreError as e:
            logger.error(
                f"Stock deducted but marker {marker['id']} not stamped: shipment {shipment['id']} "
                f"sku {sku} qty {quantity} stock row {stock['id']}. Manual review required: {str(e)}"
            )
            return 'unstamped'

        return 'deducted'

    def reconcile_shipment(self, shipment: Dict[str, Any], results: Dict[str, Any]) -> None:
        """Reconcile every SKU of one shipment, recording outcomes in results."""
        try:
            quantities = quantities_by_sku(normalize_line_items(shipment.get('shipment_items')))
        except PayloadError as e:
            logger.warning(f"Skipping shipment {shipment['id']}: {e.message}")
            results['malformed'] += 1
            return

        for sku, quantity in quantities.items():
            try:
                outcome = self.reconcile_line(shipment, sku, quantity)
            except StoreError as e:
                logger.error(f"Store error reconciling shipment {shipment['id']} sku {sku}: {str(e)}")
                outcome = 'errors'
            results[outcome] = results.get(outcome, 0) + 1

    def run(self, since: str, settings: JobSettings) -> Dict[str, Any]:
        """Reconcile every non-voided shipment created since a timestamp.

        Args:
            since: ISO-8601 start of the lookback window
            settings: Paging settings

        Returns:
            Dictionary with outcome counts
        """
        results = {
            'success': True,
            'shipments': 0,
            'deducted': 0,
            'already_reconciled': 0,
            'no_marker': 0,
            'unresolved': 0,
            'insufficient_stock': 0,
            'unstamped': 0,
            'malformed': 0,
            'errors': 0,
        }

        pages = iter_pages(
            lambda offset, limit: self.store.select(
                'shipments',
                'id, shipment_items, order_id, order_number, ship_date, created_at, voided',
                [gte('created_at', since), is_not_true('voided')],
                order=[asc('created_at'), asc('id')],
                offset=offset,
                limit=limit
            ),
            settings.page_size,
            settings.max_pages
        )

        try:
            for shipments in pages:
                for shipment in shipments:
                    self.reconcile_shipment(shipment, results)
                results['shipments'] += len(shipments)
        except StoreError as e:
            logger.error(f"Shipments fetch failed: {str(e)}")
            results['success'] = False
            results['error'] = str(e)

        logger.info(f"Shipment reconciliation processed {results['shipments']} shipments in lookback window")
        return results
