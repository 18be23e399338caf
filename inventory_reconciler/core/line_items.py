# inventory_reconciler/core/line_items.py
import enum
import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from inventory_reconciler.core.sku_resolver import normalize_sku
from inventory_reconciler.exceptions import PayloadError

RECONCILED_STAMP = 'Reconciled via cron'


class PayloadShape(enum.Enum):
    """Known layouts of a shipment's ``shipment_items`` column."""
    EMPTY = 'empty'
    LIST = 'list'
    ITEMS_OBJECT = 'items'
    PASCAL_OBJECT = 'ShipmentItems'


@dataclass(frozen=True)
class LineItem:
    sku: str
    quantity: float


def detect_shape(payload: Any) -> PayloadShape:
    """Classify a decoded payload.

    Raises:
        PayloadError: If the payload is not one of the known layouts
    """
    if payload is None:
        return PayloadShape.EMPTY
    if isinstance(payload, list):
        return PayloadShape.LIST
    if isinstance(payload, dict):
        if isinstance(payload.get('items'), list):
            return PayloadShape.ITEMS_OBJECT
        if isinstance(payload.get('ShipmentItems'), list):
            return PayloadShape.PASCAL_OBJECT
        if not payload.get('items') and not payload.get('ShipmentItems'):
            return PayloadShape.EMPTY
    raise PayloadError(f"Unrecognized line item payload: {type(payload).__name__}")


def _raw_items(payload: Any) -> List[Any]:
    if isinstance(payload, str):
        if not payload.strip():
            return []
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise PayloadError(f"Line item payload is not valid JSON: {str(e)}") from e

    shape = detect_shape(payload)
    if shape is PayloadShape.LIST:
        return payload
    if shape is PayloadShape.ITEMS_OBJECT:
        return payload['items']
    if shape is PayloadShape.PASCAL_OBJECT:
        return payload['ShipmentItems']
    return []


def _item_sku(item: Dict) -> Optional[str]:
    product = item.get('product')
    return item.get('sku') or item.get('SKU') or (product.get('sku') if isinstance(product, dict) else None)


def _item_quantity(item: Dict) -> float:
    for key in ('quantity', 'Quantity', 'qty'):
        if item.get(key) is not None:
            raw = item[key]
            break
    else:
        return 1
    try:
        quantity = float(raw)
    except (TypeError, ValueError):
        return 0
    if math.isnan(quantity):
        return 0
    return int(quantity) if quantity.is_integer() else quantity


def normalize_line_items(payload: Any) -> List[LineItem]:
    """Flatten any supported ``shipment_items`` layout into canonical line items.

    Items without a SKU or with a non-positive or non-numeric quantity are dropped.

    Raises:
        PayloadError: If the payload itself is malformed
    """
    items = []
    for item in _raw_items(payload):
        if not isinstance(item, dict):
            continue
        sku = normalize_sku(_item_sku(item))
        quantity = _item_quantity(item)
        if not sku or quantity <= 0:
            continue
        items.append(LineItem(sku, quantity))
    return items


def quantities_by_sku(items: List[LineItem]) -> Dict[str, float]:
    """Sum quantities of duplicate lines per SKU, keeping first-seen order."""
    totals: Dict[str, float] = {}
    for item in items:
        totals[item.sku] = totals.get(item.sku, 0) + item.quantity
    return totals


def is_reconciled(notes: Any) -> bool:
    """True if a movement's notes already carry the reconciliation stamp."""
    return isinstance(notes, str) and RECONCILED_STAMP in notes


def stamp_notes(notes: Optional[str]) -> str:
    """Append the reconciliation stamp to existing notes."""
    return f"{notes} | {RECONCILED_STAMP}" if notes else RECONCILED_STAMP
