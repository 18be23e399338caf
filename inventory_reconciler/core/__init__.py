from .sku_resolver import SkuResolution, normalize_sku, resolve_sku, build_sku_maps, build_client_sku_map
from .demand import aggregate_demand
from .stock_ledger import StockPosition, ClientIndex, build_stock_ledger
from .alert_policy import AlertDecision, evaluate_alert
from .line_items import LineItem, normalize_line_items, is_reconciled, stamp_notes
from .shipment_merge import missing_field_update, MergePlan, OrderIndex

__all__ = [
    'SkuResolution',
    'normalize_sku',
    'resolve_sku',
    'build_sku_maps',
    'build_client_sku_map',
    'aggregate_demand',
    'StockPosition',
    'ClientIndex',
    'build_stock_ledger',
    'AlertDecision',
    'evaluate_alert',
    'LineItem',
    'normalize_line_items',
    'is_reconciled',
    'stamp_notes',
    'missing_field_update',
    'MergePlan',
    'OrderIndex'
]
