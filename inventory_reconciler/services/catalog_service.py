# inventory_reconciler/services/catalog_service.py
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from inventory_reconciler.config import JobSettings
from inventory_reconciler.core.demand import AWAITING_SHIPMENT
from inventory_reconciler.core.sku_resolver import SkuMap, build_client_sku_map, build_sku_maps
from inventory_reconciler.core.stock_ledger import ClientIndex
from inventory_reconciler.db.interface import StoreInterface, Filter, asc, eq, in_
from inventory_reconciler.models import LocationType
from inventory_reconciler.utils.pagination import chunked, iter_pages

logger = logging.getLogger(__name__)

CLIENT_PRODUCT = 'client_product'
ORDER_ID_CHUNK = 200


@dataclass
class Catalog:
    """Catalog maps shared by the alert and deduction passes of one run."""
    product_map: SkuMap = field(default_factory=dict)
    bundle_map: SkuMap = field(default_factory=dict)
    client_sku_map: SkuMap = field(default_factory=dict)
    client_index: ClientIndex = field(default_factory=lambda: ClientIndex({}, {}))


class CatalogService:
    """Service for reading catalog, location and stock tables."""

    def __init__(self, store: StoreInterface, settings: JobSettings):
        """Initialize the catalog service.

        Args:
            store: Store handle
            settings: Paging settings for catalog-sized tables
        """
        self.store = store
        self.settings = settings

    def _select_all(
        self,
        table: str,
        columns: str,
        filters: Sequence[Filter] = (),
        order_column: str = 'id'
    ) -> List[Dict[str, Any]]:
        rows = []
        pages = iter_pages(
            lambda offset, limit: self.store.select(
                table, columns, filters, order=[asc(order_column)], offset=offset, limit=limit
            ),
            self.settings.page_size,
            self.settings.max_pages
        )
        for page in pages:
            rows.extend(page)
        return rows

    def load_catalog(self) -> Catalog:
        """Load products, bundles and client inventory into lookup maps.

        Raises:
            StoreError: If any of the catalog tables cannot be read
        """
        products = self._select_all('products', 'id, Sku')
        bundles = self._select_all('bundle', 'id, name')
        client_rows = self._select_all('client_inventory', 'id, sku, client_id')

        product_map, bundle_map = build_sku_maps(products, bundles)
        logger.info(
            f"Catalog loaded: {len(product_map)} products, {len(bundle_map)} bundles, "
            f"{len(client_rows)} client inventory rows"
        )
        return Catalog(
            product_map=product_map,
            bundle_map=bundle_map,
            client_sku_map=build_client_sku_map(client_rows),
            client_index=ClientIndex.from_rows(client_rows),
        )

    def location_types(self) -> Dict[Any, str]:
        """Map every inventory location id to its type."""
        rows = self._select_all('inventory_locations', 'id, code, type')
        return {row['id']: row.get('type') for row in rows}

    def supply_location_ids(self) -> List[Any]:
        """Ids of the Batch and Production locations that shipments draw from."""
        rows = self._select_all(
            'inventory_locations',
            'id, type',
            [in_('type', [LocationType.BATCH.value, LocationType.PRODUCTION.value])]
        )
        return [row['id'] for row in rows]

    def client_stock_rows(self) -> List[Dict[str, Any]]:
        """All client-product stock level rows."""
        return self._select_all(
            'inventory_stock_levels',
            'id, item_type, item_id, on_hand, available, location_id',
            [eq('item_type', CLIENT_PRODUCT)]
        )

    def awaiting_shipment_items(self, settings: JobSettings) -> List[Dict[str, Any]]:
        """Order lines of every order still awaiting shipment.

        Args:
            settings: Paging settings for the orders scan

        Returns:
            List of ``order_items`` rows
        """
        order_ids: List[Any] = []
        pages = iter_pages(
            lambda offset, limit: self.store.select(
                'orders',
                'order_id',
                [eq('order_status', AWAITING_SHIPMENT)],
                order=[asc('order_id')],
                offset=offset,
                limit=limit
            ),
            settings.page_size,
            settings.max_pages
        )
        for page in pages:
            order_ids.extend(row['order_id'] for row in page)

        return list(self._items_for_orders(order_ids))

    def _items_for_orders(self, order_ids: List[Any]) -> Iterable[Dict[str, Any]]:
        for chunk in chunked(order_ids, ORDER_ID_CHUNK):
            yield from self._select_all(
                'order_items', 'id, order_id, sku, quantity', [in_('order_id', chunk)]
            )
