# inventory_reconciler/core/demand.py
from typing import Dict, Iterable

from inventory_reconciler.core.sku_resolver import SkuMap, normalize_sku, resolve_sku

AWAITING_SHIPMENT = 'awaiting_shipment'


def _quantity(value) -> float:
    try:
        return float(value) if value not in (None, '') else 0
    except (TypeError, ValueError):
        return 0


def aggregate_demand(
    order_items: Iterable[Dict],
    product_map: SkuMap,
    bundle_map: SkuMap
) -> Dict[str, float]:
    """Sum queued order quantities per canonical base SKU.

    Args:
        order_items: Order line rows (``sku``, ``quantity``) of awaiting-shipment orders
        product_map: Normalized SKU -> product row
        bundle_map: Normalized name -> bundle row

    Returns:
        Dictionary mapping base SKU to total queued quantity
    """
    demand: Dict[str, float] = {}
    for item in order_items:
        resolution = resolve_sku(item.get('sku'), product_map, bundle_map)
        base = normalize_sku(resolution.base_sku)
        if not base:
            continue
        demand[base] = demand.get(base, 0) + _quantity(item.get('quantity'))
    return demand
