# inventory_reconciler/core/alert_policy.py
from dataclasses import dataclass
from typing import Optional

from inventory_reconciler.core.stock_ledger import StockPosition
from inventory_reconciler.models import AlertType, Severity


@dataclass(frozen=True)
class AlertDecision:
    alert_type: AlertType
    severity: Severity


def evaluate_alert(qty_needed: float, position: Optional[StockPosition]) -> Optional[AlertDecision]:
    """Decide which alert, if any, a SKU should carry.

    A purchase is needed when demand exceeds all supply. A restock is needed when
    demand exceeds pickable availability and backstock exists to move. Purchase
    takes priority.

    Args:
        qty_needed: Queued demand for the SKU
        position: Supply figures, or None when the SKU has no stock rows

    Returns:
        AlertDecision, or None when no alert should be active
    """
    position = position or StockPosition()

    needs_purchase = qty_needed > position.total
    needs_restock = qty_needed > position.pickable_available and position.backstock > 0

    if needs_purchase:
        return AlertDecision(AlertType.PURCHASE, Severity.HIGH)
    if needs_restock:
        return AlertDecision(AlertType.RESTOCK, Severity.MEDIUM)
    return None
