# inventory_reconciler/core/shipment_merge.py
"""Candidate shipment construction and the fill-missing merge policy.

A candidate is the full shipment record one carrier event implies. Candidates are
reconciled against the existing row sharing their tracking number: absent rows are
inserted, present rows only receive values for fields that are still null. The first
source to record a field wins.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from inventory_reconciler.utils.date_utils import to_iso_or_null

SOURCE_SHIPSTATION = 'shipstation'
SOURCE_SHIPENGINE = 'shipengine'

SHIP_TO_FIELDS = (
    'ship_to_name', 'ship_to_company', 'ship_to_street1', 'ship_to_street2',
    'ship_to_street3', 'ship_to_city', 'ship_to_state', 'ship_to_postal_code',
    'ship_to_country', 'ship_to_phone', 'ship_to_residential',
)

SHIPSTATION_EVENT_COLUMNS = (
    'shipstation_id, order_id, order_number, store_id, tracking_number, carrier_code, '
    'service_code, package_code, confirmation, warehouse_id, shipment_cost, insurance_cost, '
    'fulfillment_fee, create_date, ship_date, voided, is_return_label, marketplace_notified, '
    'notify_error_message, source_type'
)

SHIPENGINE_EVENT_COLUMNS = (
    'shipengine_id, order_number, tracking_number, carrier_code, service_code, package_code, '
    'shipment_status, ship_date, create_date, voided, voided_at, is_return_label, '
    + ', '.join(SHIP_TO_FIELDS) + ', shipping_amount, insurance_amount'
)


def _value(event: Dict, key: str) -> Any:
    """Source value with empty strings treated as missing."""
    value = event.get(key)
    return None if value == '' else value


def _text(value: Any) -> Optional[str]:
    return None if value is None or value == '' else str(value)


def clean_tracking(value: Any) -> str:
    return str(value).strip() if value is not None else ''


def _base_candidate(source: str, event: Dict) -> Dict[str, Any]:
    create_date = to_iso_or_null(event.get('create_date'))
    return {
        'source': source,
        'type': None,
        'shipstation_numeric_shipment_id': None,
        'fulfillment_id': None,
        'order_id': None,
        'order_number': _text(event.get('order_number')),
        'user_id': None,
        'customer_email': None,
        'tracking_number': clean_tracking(event.get('tracking_number')) or None,
        'create_date': create_date,
        'ship_date': to_iso_or_null(event.get('ship_date')) or create_date,
        'void_date': None,
        'delivery_date': None,
        'carrier_code': _value(event, 'carrier_code'),
        'service_code': _value(event, 'service_code'),
        'package_code': _value(event, 'package_code'),
        'confirmation': None,
        'warehouse_id': None,
        'shipment_cost': None,
        'insurance_cost': None,
        'fulfillment_fee': None,
        'void_requested': None,
        'voided': event.get('voided') or None,
        'marketplace_notified': None,
        'notify_error_message': None,
        **{name: _value(event, name) for name in SHIP_TO_FIELDS},
        'shipment_items': None,
        'is_fulfillment': False,
        'source_api_shipment_id': None,
        'label_pdf_url': None,
        'status': 'active',
        'shipengine_label_id': None,
        'receipt_pdf_url': None,
        'usps_transaction_id': None,
        'shipstation_actual_shipment_id': None,
        'create_date_shipstation': None,
    }


def shipment_from_shipstation_event(event: Dict, order_row: Optional[Dict]) -> Dict[str, Any]:
    """Build a candidate shipment from a ShipStation event.

    Args:
        event: ``shipstation_events`` row
        order_row: Owning order, if resolved

    Returns:
        Candidate shipment row
    """
    candidate = _base_candidate(SOURCE_SHIPSTATION, event)
    shipstation_id = _text(event.get('shipstation_id'))
    source_type = event.get('source_type')

    order_id = order_row.get('order_id') if order_row else None
    if order_id is None:
        order_id = event.get('order_id')

    candidate.update({
        'order_id': _text(order_id),
        'confirmation': _value(event, 'confirmation'),
        'warehouse_id': _text(event.get('warehouse_id')),
        'shipment_cost': _value(event, 'shipment_cost'),
        'insurance_cost': _value(event, 'insurance_cost'),
        'fulfillment_fee': _value(event, 'fulfillment_fee'),
        'marketplace_notified': _value(event, 'marketplace_notified'),
        'notify_error_message': _value(event, 'notify_error_message'),
        'is_fulfillment': bool(source_type) and 'fulfillment' in str(source_type).lower(),
        'source_api_shipment_id': shipstation_id,
        'shipstation_actual_shipment_id': shipstation_id,
        'create_date_shipstation': to_iso_or_null(event.get('create_date')),
    })
    return candidate


def shipment_from_shipengine_event(event: Dict, order_row: Optional[Dict]) -> Dict[str, Any]:
    """Build a candidate shipment from a ShipEngine event.

    Args:
        event: ``shipengine_events`` row
        order_row: Owning order, if resolved

    Returns:
        Candidate shipment row
    """
    candidate = _base_candidate(SOURCE_SHIPENGINE, event)
    shipengine_id = _text(event.get('shipengine_id'))

    candidate.update({
        'order_id': _text(order_row.get('order_id')) if order_row else None,
        'void_date': to_iso_or_null(event.get('voided_at')),
        'shipment_cost': _value(event, 'shipping_amount'),
        'insurance_cost': _value(event, 'insurance_amount'),
        'source_api_shipment_id': shipengine_id,
        'shipengine_label_id': shipengine_id,
    })
    return candidate


def missing_field_update(existing: Dict[str, Any], candidate: Dict[str, Any]) -> Dict[str, Any]:
    """Return the candidate values for fields the existing row has not recorded yet.

    Never overwrites a non-null value, even when the candidate disagrees.
    """
    update = {}
    for key, value in candidate.items():
        if value is None:
            continue
        if existing.get(key) is None:
            update[key] = value
    return update


@dataclass
class OrderIndex:
    """Orders indexed for event-to-order resolution."""
    by_composite: Dict[tuple, Dict] = field(default_factory=dict)
    by_number: Dict[str, Dict] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[Dict]) -> 'OrderIndex':
        index = cls()
        for row in rows:
            number = _text(row.get('order_number'))
            index.by_composite[(number, _text(row.get('store_id')))] = row
            index.by_number.setdefault(number, row)
        return index

    def find(self, order_number: Any, store_id: Any = None, use_store: bool = False) -> Optional[Dict]:
        """Find an order by number, optionally preferring an exact store match."""
        number = _text(order_number)
        if number is None:
            return None
        if use_store:
            row = self.by_composite.get((number, _text(store_id)))
            if row is not None:
                return row
        return self.by_number.get(number)


@dataclass
class MergePlan:
    """Inserts and fill-missing updates planned for one page of events.

    Repeated tracking numbers within the page fold into the earlier pending insert
    or update, so the outcome matches processing the events one at a time.
    """
    existing: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    inserts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    updates: Dict[Any, Dict[str, Any]] = field(default_factory=dict)

    def add(self, candidate: Dict[str, Any]) -> None:
        tracking = candidate.get('tracking_number')
        if not tracking:
            return

        pending = self.inserts.get(tracking)
        if pending is not None:
            pending.update(missing_field_update(pending, candidate))
            return

        current = self.existing.get(tracking)
        if current is None:
            self.inserts[tracking] = dict(candidate)
            return

        update = missing_field_update(current, candidate)
        if update:
            current.update(update)
            self.updates.setdefault(current['id'], {}).update(update)
