# inventory_reconciler/batch/__init__.py

from .inventory_job import run_inventory_job
from .shipment_backfill_job import run_shipment_backfill_job
from .order_tracking_job import run_order_tracking_job

__all__ = [
    'run_inventory_job',
    'run_shipment_backfill_job',
    'run_order_tracking_job'
]
