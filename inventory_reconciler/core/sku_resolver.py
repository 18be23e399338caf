# inventory_reconciler/core/sku_resolver.py
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

_WHITESPACE = re.compile(r'\s+')
_SEGMENT_SEPARATORS = re.compile(r'[-_.]')

MATCH_BUNDLE = 'bundle'
MATCH_PRODUCT = 'product'
MATCH_CLIENT_PRODUCT = 'client_product'

SkuMap = Dict[str, Dict[str, Any]]


@dataclass(frozen=True)
class SkuResolution:
    """Result of resolving a raw SKU against the catalog.

    Attributes:
        base_sku: Normalized catalog key, or the first SKU segment when unmatched
        match_type: 'bundle', 'product', 'client_product' or None when unresolved
        entity: The matched catalog row, if any
    """
    base_sku: str
    match_type: Optional[str] = None
    entity: Optional[Dict[str, Any]] = None

    @property
    def is_resolved(self) -> bool:
        return self.match_type is not None


def normalize_sku(raw: Any) -> str:
    """Lower-case a SKU and remove all whitespace."""
    if raw is None:
        return ''
    return _WHITESPACE.sub('', str(raw).lower())


def build_sku_maps(products: Iterable[Dict], bundles: Iterable[Dict]) -> Tuple[SkuMap, SkuMap]:
    """Index catalog rows by normalized SKU.

    Args:
        products: Rows from ``products`` carrying a ``Sku`` column
        bundles: Rows from ``bundle`` carrying a ``name`` column

    Returns:
        Tuple of (product_map, bundle_map)
    """
    product_map = {}
    for product in products or []:
        if product and product.get('Sku'):
            product_map[normalize_sku(product['Sku'])] = product

    bundle_map = {}
    for bundle in bundles or []:
        if bundle and bundle.get('name'):
            bundle_map[normalize_sku(bundle['name'])] = bundle

    return product_map, bundle_map


def build_client_sku_map(client_rows: Iterable[Dict]) -> SkuMap:
    """Index client inventory rows by normalized SKU; the first row per SKU wins."""
    client_map = {}
    for row in client_rows or []:
        key = normalize_sku(row.get('sku')) if row else ''
        if key and key not in client_map:
            client_map[key] = row
    return client_map


def _longest_prefix(sku: str, keys: Iterable[str]) -> str:
    best = ''
    for key in keys:
        if key and len(key) > len(best) and sku.startswith(key):
            best = key
    return best


def resolve_sku(
    raw_sku: Any,
    product_map: SkuMap,
    bundle_map: SkuMap,
    client_sku_map: Optional[SkuMap] = None
) -> SkuResolution:
    """Resolve a raw order-line SKU to a canonical catalog identity.

    Exact matches are tried first (bundle, client product, product), then the
    longest registered key that prefixes the SKU, searched per map in the same
    order. A bundle prefix of any length beats the other maps so variant suffixes
    never pull a bundle over to a product. Unmatched SKUs fall back to their first
    ``-``/``_``/``.`` segment with match_type None.

    Args:
        raw_sku: SKU as it appears on the order line
        product_map: Normalized SKU -> product row
        bundle_map: Normalized name -> bundle row
        client_sku_map: Optional normalized SKU -> client inventory row

    Returns:
        SkuResolution
    """
    sku = normalize_sku(raw_sku)
    if not sku:
        return SkuResolution('')

    tiers = [(MATCH_BUNDLE, bundle_map or {})]
    if client_sku_map:
        tiers.append((MATCH_CLIENT_PRODUCT, client_sku_map))
    tiers.append((MATCH_PRODUCT, product_map or {}))

    for match_type, mapping in tiers:
        if sku in mapping:
            return SkuResolution(sku, match_type, mapping[sku])

    for match_type, mapping in tiers:
        key = _longest_prefix(sku, mapping.keys())
        if key:
            return SkuResolution(key, match_type, mapping[key])

    return SkuResolution(_SEGMENT_SEPARATORS.split(sku)[0])
