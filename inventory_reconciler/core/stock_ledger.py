# inventory_reconciler/core/stock_ledger.py
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from inventory_reconciler.core.sku_resolver import normalize_sku
from inventory_reconciler.models import LocationType

NON_PICKABLE_TYPES = frozenset({LocationType.BACKSTOCK.value, LocationType.PRODUCTION.value})


@dataclass
class StockPosition:
    """Supply figures for one SKU across all locations."""
    pickable_available: float = 0
    backstock: float = 0
    total: float = 0
    client_id: Optional[Any] = None


@dataclass(frozen=True)
class ClientIndex:
    """Client inventory lookup keyed by stringified item id."""
    sku_by_id: Dict[str, str]
    client_by_id: Dict[str, Any]

    @classmethod
    def from_rows(cls, rows: Iterable[Dict]) -> 'ClientIndex':
        sku_by_id = {}
        client_by_id = {}
        for row in rows:
            item_id = str(row.get('id'))
            sku_by_id[item_id] = normalize_sku(row.get('sku'))
            client_by_id[item_id] = row.get('client_id')
        return cls(sku_by_id, client_by_id)


def _number(value) -> float:
    return value if isinstance(value, (int, float)) else 0


def build_stock_ledger(
    stock_rows: Iterable[Dict],
    location_types: Dict[Any, str],
    client_index: ClientIndex
) -> Dict[str, StockPosition]:
    """Compute pickable, backstock and total supply per SKU.

    Rows whose item id has no client inventory mapping, or whose location is
    unknown, are dropped.

    Args:
        stock_rows: ``inventory_stock_levels`` rows for client products
        location_types: Location id -> location type
        client_index: Client inventory lookup

    Returns:
        Dictionary mapping normalized SKU to StockPosition
    """
    ledger: Dict[str, StockPosition] = {}

    for row in stock_rows:
        item_id = str(row.get('item_id'))
        sku = client_index.sku_by_id.get(item_id)
        if not sku:
            continue
        location_type = location_types.get(row.get('location_id'))
        if location_type is None:
            continue

        position = ledger.setdefault(sku, StockPosition())
        on_hand = _number(row.get('on_hand'))
        position.total += on_hand

        if location_type == LocationType.BACKSTOCK.value:
            position.backstock += on_hand
        elif location_type not in NON_PICKABLE_TYPES:
            position.pickable_available += _number(row.get('available'))
            if position.client_id is None:
                position.client_id = client_index.client_by_id.get(item_id)

    return ledger
