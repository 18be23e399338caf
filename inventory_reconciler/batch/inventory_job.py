# inventory_reconciler/batch/inventory_job.py
from datetime import datetime
from typing import Dict, Optional

from inventory_reconciler.config import Config, config as default_config
from inventory_reconciler.core.demand import aggregate_demand
from inventory_reconciler.core.stock_ledger import build_stock_ledger
from inventory_reconciler.db.interface import StoreInterface
from inventory_reconciler.exceptions import StoreError
from inventory_reconciler.logging_setup import get_logger, logger as log_manager
from inventory_reconciler.services.alert_service import AlertService
from inventory_reconciler.services.catalog_service import Catalog, CatalogService
from inventory_reconciler.services.stock_deduction_service import StockDeductionService
from inventory_reconciler.utils.date_utils import since_iso

# Initialize loggers
alerts_logger = get_logger('inventory_alerts')
deduction_logger = get_logger('stock_deduction')


def run_alerts(store: StoreInterface, catalog_service: CatalogService, catalog: Catalog, cfg: Config) -> Dict:
    """Recompute restock/purchase alerts for every SKU with queued demand.

    Args:
        store: Store handle
        catalog_service: Catalog reader
        catalog: Catalog maps loaded for this run
        cfg: Configuration

    Returns:
        Dictionary with alert results
    """
    alerts_logger.info("Aggregating awaiting-shipment demand")
    order_items = catalog_service.awaiting_shipment_items(cfg.job_settings('ALERTS'))
    demand = aggregate_demand(order_items, catalog.product_map, catalog.bundle_map)
    alerts_logger.info(f"{len(order_items)} order lines -> {len(demand)} SKUs with demand")

    ledger = build_stock_ledger(
        catalog_service.client_stock_rows(),
        catalog_service.location_types(),
        catalog.client_index
    )

    client_ids = {sku: row.get('client_id') for sku, row in catalog.client_sku_map.items()}
    results = AlertService(store).evaluate_all(demand, ledger, client_ids)
    alerts_logger.info(
        f"Alerts: {results['evaluated']} evaluated, {results['raised']} raised, "
        f"{results['cleared']} cleared, {results['errors']} errors"
    )
    return results


def run_deduction(store: StoreInterface, catalog_service: CatalogService, catalog: Catalog, cfg: Config) -> Dict:
    """Deduct recently shipped quantities from Batch/Production stock.

    Args:
        store: Store handle
        catalog_service: Catalog reader
        catalog: Catalog maps loaded for this run
        cfg: Configuration

    Returns:
        Dictionary with deduction results
    """
    settings = cfg.job_settings('RECON')
    since = since_iso(settings.lookback)
    deduction_logger.info(f"Reconciling shipments created since {since}")

    supply_ids = catalog_service.supply_location_ids()
    if not supply_ids:
        deduction_logger.warning("No Batch or Production locations found; every line will be skipped")

    service = StockDeductionService(store, catalog, supply_ids)
    results = service.run(since, settings)
    deduction_logger.info(
        f"Deduction: {results['deducted']} deducted, {results['already_reconciled']} already reconciled, "
        f"{results['no_marker']} without marker, {results['insufficient_stock']} short"
    )
    return results


def run_inventory_job(store: StoreInterface, cfg: Optional[Config] = None) -> Dict:
    """Run the alert pass followed by the shipment deduction pass.

    Both passes share one catalog load. A failure in the alert pass does not
    prevent the deduction pass.

    Args:
        store: Store handle
        cfg: Optional configuration (defaults to the global config)

    Returns:
        Dictionary with job results
    """
    cfg = cfg or default_config
    log_info = log_manager.batch_start_log('inventory_job')

    results = {
        'start_time': datetime.now(),
        'end_time': None,
        'duration': None,
        'processes': {},
        'success': True,
    }

    catalog_service = CatalogService(store, cfg.catalog_settings)
    try:
        catalog = catalog_service.load_catalog()
    except StoreError as e:
        alerts_logger.error(f"Catalog load failed, skipping inventory run: {str(e)}")
        results['success'] = False
        results['error'] = str(e)
        catalog = None

    if catalog is not None:
        for name, step in (('alerts', run_alerts), ('deduction', run_deduction)):
            try:
                results['processes'][name] = step(store, catalog_service, catalog, cfg)
            except StoreError as e:
                log_manager.log_exception('batch', e, f"Inventory step {name} failed")
                results['processes'][name] = {'success': False, 'error': str(e)}

            if not results['processes'][name].get('success', False):
                results['success'] = False

    results['end_time'] = datetime.now()
    results['duration'] = results['end_time'] - results['start_time']
    log_manager.batch_end_log(log_info, results['success'], {
        name: {k: v for k, v in process.items() if isinstance(v, int)}
        for name, process in results['processes'].items()
    })
    return results
