# inventory_reconciler/batch/shipment_backfill_job.py
from datetime import datetime
from typing import Dict, Optional

from inventory_reconciler.config import Config, config as default_config
from inventory_reconciler.db.interface import StoreInterface
from inventory_reconciler.logging_setup import get_logger, logger as log_manager
from inventory_reconciler.services.shipment_merge_service import ShipmentMergeService
from inventory_reconciler.utils.date_utils import since_iso

# Initialize logger
logger = get_logger('shipment_backfill')


def run_shipment_backfill_job(store: StoreInterface, cfg: Optional[Config] = None) -> Dict:
    """Merge recent ShipStation and ShipEngine events into shipments.

    Args:
        store: Store handle
        cfg: Optional configuration (defaults to the global config)

    Returns:
        Dictionary with job results
    """
    cfg = cfg or default_config
    settings = cfg.job_settings('BACKFILL')
    since = since_iso(settings.lookback)

    log_info = log_manager.batch_start_log(
        'shipment_backfill_job', {'since': since, 'batched': settings.batched}
    )
    start_time = datetime.now()

    results = ShipmentMergeService(store, settings).run(since)

    results['start_time'] = start_time
    results['end_time'] = datetime.now()
    results['duration'] = results['end_time'] - start_time

    for source in ('shipstation', 'shipengine'):
        totals = results.get(source)
        if totals:
            logger.info(
                f"{source}: {totals['inserted']} inserted, {totals['updated']} filled, "
                f"{totals['skipped']} skipped, {totals['errors']} errors"
            )

    log_manager.batch_end_log(log_info, results['success'], {
        source: results[source] for source in ('shipstation', 'shipengine') if source in results
    })
    return results
