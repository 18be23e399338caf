# inventory_reconciler/services/__init__.py
from .catalog_service import Catalog, CatalogService
from .alert_service import AlertService
from .stock_deduction_service import StockDeductionService
from .shipment_merge_service import ShipmentMergeService
from .tracking_backfill_service import (
    TrackingBackfillService, ShipStationLookup, ShipEngineLookup, LabelLedgerLookup
)

__all__ = [
    'Catalog',
    'CatalogService',
    'AlertService',
    'StockDeductionService',
    'ShipmentMergeService',
    'TrackingBackfillService',
    'ShipStationLookup',
    'ShipEngineLookup',
    'LabelLedgerLookup'
]
