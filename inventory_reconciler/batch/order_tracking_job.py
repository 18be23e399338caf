# inventory_reconciler/batch/order_tracking_job.py
from datetime import datetime
from typing import Dict, Optional

from inventory_reconciler.config import Config, config as default_config
from inventory_reconciler.db.interface import StoreInterface
from inventory_reconciler.logging_setup import get_logger, logger as log_manager
from inventory_reconciler.services.tracking_backfill_service import TrackingBackfillService
from inventory_reconciler.utils.date_utils import since_iso

# Initialize logger
logger = get_logger('order_tracking')


def run_order_tracking_job(store: StoreInterface, cfg: Optional[Config] = None) -> Dict:
    """Backfill tracking numbers and ship dates onto shipped orders.

    Args:
        store: Store handle
        cfg: Optional configuration (defaults to the global config)

    Returns:
        Dictionary with job results
    """
    cfg = cfg or default_config
    settings = cfg.job_settings('FIX_ORDERS')
    since = since_iso(settings.lookback)

    log_info = log_manager.batch_start_log('order_tracking_job', {'since': since})
    start_time = datetime.now()

    results = TrackingBackfillService(store, settings).run(since)

    results['start_time'] = start_time
    results['end_time'] = datetime.now()
    results['duration'] = results['end_time'] - start_time

    if results['by_source']:
        logger.info(f"Tracking found by source: {results['by_source']}")

    log_manager.batch_end_log(log_info, results['success'], {
        key: results[key] for key in ('scanned', 'fixed', 'not_found', 'shipments_created', 'errors')
    })
    return results
