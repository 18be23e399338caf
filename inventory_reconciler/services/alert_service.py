# inventory_reconciler/services/alert_service.py
import logging
from typing import Any, Dict, Optional

from inventory_reconciler.core.alert_policy import AlertDecision, evaluate_alert
from inventory_reconciler.core.stock_ledger import StockPosition
from inventory_reconciler.db.interface import StoreInterface, eq
from inventory_reconciler.exceptions import StoreError
from inventory_reconciler.models import AlertType
from inventory_reconciler.services.catalog_service import CLIENT_PRODUCT
from inventory_reconciler.utils.date_utils import utc_now_iso

logger = logging.getLogger(__name__)

ALERTS_TABLE = 'inventory_alerts'
ALERT_KEY = ('client_id', 'item_type', 'alert_type', 'message')


class AlertService:
    """Service for maintaining restock/purchase alerts.

    Alerts are soft-deleted and keyed by (client_id, item_type, alert_type, message),
    with the SKU as the message.
    """

    def __init__(self, store: StoreInterface):
        """Initialize the alert service.

        Args:
            store: Store handle
        """
        self.store = store

    def _key_filters(self, client_id, sku, alert_type: Optional[AlertType] = None):
        filters = [
            eq('item_type', CLIENT_PRODUCT),
            eq('message', sku),
            eq('client_id', client_id),
            eq('is_active', True),
        ]
        if alert_type is not None:
            filters.append(eq('alert_type', alert_type.value))
        return filters

    def deactivate(self, sku: str, client_id: Any, alert_type: Optional[AlertType] = None) -> int:
        """Soft-delete active alerts for a SKU, optionally of one type only.

        Returns:
            Number of alerts deactivated
        """
        return self.store.update(
            ALERTS_TABLE,
            {'is_active': False, 'updated_at': utc_now_iso()},
            self._key_filters(client_id, sku, alert_type)
        )

    def raise_alert(self, sku: str, client_id: Any, decision: AlertDecision) -> str:
        """Upsert the active alert for a SKU.

        Tries a native upsert on the logical key first. If the store rejects it
        (e.g. no unique constraint), or the client id is NULL, emulates it with
        select-then-update-or-insert.
        The emulation can double-insert when two runs overlap; the next run still
        converges on the same state.

        Returns:
            'upserted', 'updated' or 'inserted'

        Raises:
            StoreError: If the emulated upsert also fails
        """
        payload = {
            'item_type': CLIENT_PRODUCT,
            'item_id': None,
            'alert_type': decision.alert_type.value,
            'message': sku,
            'severity': decision.severity.value,
            'is_active': True,
            'client_id': client_id,
            'updated_at': utc_now_iso(),
        }

        # NULL client ids never collide in a unique index, so ON CONFLICT cannot match them.
        if client_id is not None:
            try:
                self.store.upsert(ALERTS_TABLE, payload, on_conflict=ALERT_KEY)
                return 'upserted'
            except StoreError as e:
                logger.warning(f"inventory_alerts upsert rejected; emulating upsert for {sku}: {str(e)}")

        existing = self.store.select_one(
            ALERTS_TABLE, 'id', self._key_filters(client_id, sku, decision.alert_type)
        )
        if existing and existing.get('id') is not None:
            self.store.update(
                ALERTS_TABLE,
                {'severity': decision.severity.value, 'updated_at': payload['updated_at']},
                [eq('id', existing['id'])]
            )
            return 'updated'

        self.store.insert(ALERTS_TABLE, payload)
        return 'inserted'

    def apply(self, sku: str, client_id: Any, decision: Optional[AlertDecision]) -> str:
        """Bring the stored alert state for a SKU in line with a decision.

        Returns:
            Name of the action taken ('cleared', 'upserted', 'updated', 'inserted')
        """
        if decision is None:
            self.deactivate(sku, client_id)
            return 'cleared'

        action = self.raise_alert(sku, client_id, decision)

        other = AlertType.RESTOCK if decision.alert_type is AlertType.PURCHASE else AlertType.PURCHASE
        self.deactivate(sku, client_id, other)
        return action

    def evaluate_all(
        self,
        demand: Dict[str, float],
        ledger: Dict[str, StockPosition],
        client_ids: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Evaluate and apply alert state for every SKU with queued demand.

        Args:
            demand: Base SKU -> queued quantity
            ledger: SKU -> supply figures
            client_ids: Optional SKU -> client id used when the ledger has none

        Returns:
            Dictionary with per-action counts
        """
        results = {
            'success': True,
            'evaluated': 0,
            'raised': 0,
            'cleared': 0,
            'errors': 0,
        }
        client_ids = client_ids or {}

        for sku, qty_needed in demand.items():
            position = ledger.get(sku)
            client_id = position.client_id if position and position.client_id is not None else client_ids.get(sku)
            decision = evaluate_alert(qty_needed, position)
            results['evaluated'] += 1

            try:
                action = self.apply(sku, client_id, decision)
            except StoreError as e:
                logger.error(f"Failed to apply alert state for {sku}: {str(e)}")
                results['errors'] += 1
                continue

            if action == 'cleared':
                results['cleared'] += 1
            else:
                results['raised'] += 1
                logger.debug(f"{decision.alert_type.value} alert ({action}) for {sku}: need {qty_needed}")

        return results
