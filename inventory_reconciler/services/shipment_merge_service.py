# inventory_reconciler/services/shipment_merge_service.py
import logging
from typing import Any, Callable, Dict, List, Optional

from inventory_reconciler.config import JobSettings
from inventory_reconciler.core.shipment_merge import (
    SHIPENGINE_EVENT_COLUMNS, SHIPSTATION_EVENT_COLUMNS, MergePlan, OrderIndex,
    clean_tracking, missing_field_update, shipment_from_shipengine_event,
    shipment_from_shipstation_event
)
from inventory_reconciler.db.interface import (
    StoreInterface, asc, eq, gte, in_, is_not_true, not_null
)
from inventory_reconciler.exceptions import StoreError
from inventory_reconciler.utils.pagination import iter_pages

logger = logging.getLogger(__name__)

SHIPMENTS_TABLE = 'shipments'
ORDER_COLUMNS = 'order_id, order_number, store_id'


class EventSource:
    """One carrier event table feeding the shipments table."""

    def __init__(
        self,
        name: str,
        table: str,
        columns: str,
        build: Callable[[Dict, Optional[Dict]], Dict[str, Any]],
        match_store: bool
    ):
        self.name = name
        self.table = table
        self.columns = columns
        self.build = build
        self.match_store = match_store


SHIPSTATION = EventSource(
    'shipstation', 'shipstation_events', SHIPSTATION_EVENT_COLUMNS,
    shipment_from_shipstation_event, match_store=True
)
SHIPENGINE = EventSource(
    'shipengine', 'shipengine_events', SHIPENGINE_EVENT_COLUMNS,
    shipment_from_shipengine_event, match_store=False
)


class ShipmentMergeService:
    """Service that merges carrier events into the canonical shipments table.

    Events are matched to shipments on tracking number. New tracking numbers are
    inserted; known ones only get their still-null fields filled in.
    """

    def __init__(self, store: StoreInterface, settings: JobSettings, sources: Optional[List[EventSource]] = None):
        """Initialize the merge service.

        Args:
            store: Store handle
            settings: Paging settings and the batched/per-row switch
            sources: Event sources in processing order (ShipStation, then ShipEngine)
        """
        self.store = store
        self.settings = settings
        self.sources = sources if sources is not None else [SHIPSTATION, SHIPENGINE]

    def _event_pages(self, source: EventSource, since: str):
        return iter_pages(
            lambda offset, limit: self.store.select(
                source.table,
                source.columns,
                [
                    gte('create_date', since),
                    is_not_true('voided'),
                    is_not_true('is_return_label'),
                    not_null('tracking_number'),
                ],
                order=[asc('create_date'), asc('id')],
                offset=offset,
                limit=limit
            ),
            self.settings.page_size,
            self.settings.max_pages
        )

    def _order_index(self, order_numbers: List[str]) -> OrderIndex:
        if not order_numbers:
            return OrderIndex()
        return OrderIndex.from_rows(
            self.store.select(
                'orders', ORDER_COLUMNS, [in_('order_number', order_numbers)], order=[asc('order_id')]
            )
        )

    def merge_page_batched(self, source: EventSource, events: List[Dict]) -> Dict[str, int]:
        """Merge one page of events with one lookup per key type.

        Raises:
            StoreError: If a lookup or the bulk insert fails
        """
        counts = {'inserted': 0, 'updated': 0, 'skipped': 0, 'errors': 0}

        usable = []
        for event in events:
            if clean_tracking(event.get('tracking_number')):
                usable.append(event)
            else:
                counts['skipped'] += 1
        if not usable:
            return counts

        trackings = sorted({clean_tracking(e.get('tracking_number')) for e in usable})
        order_numbers = sorted({str(e['order_number']) for e in usable if e.get('order_number')})

        existing_rows = self.store.select(SHIPMENTS_TABLE, '*', [in_('tracking_number', trackings)])
        orders = self._order_index(order_numbers)

        plan = MergePlan(existing={row['tracking_number']: dict(row) for row in existing_rows})
        for event in usable:
            order_row = orders.find(event.get('order_number'), event.get('store_id'), source.match_store)
            plan.add(source.build(event, order_row))

        if plan.inserts:
            self.store.insert(SHIPMENTS_TABLE, list(plan.inserts.values()))
            counts['inserted'] += len(plan.inserts)

        for shipment_id, update in plan.updates.items():
            try:
                self.store.update(SHIPMENTS_TABLE, update, [eq('id', shipment_id)])
                counts['updated'] += 1
            except StoreError as e:
                logger.error(f"Failed to fill shipment {shipment_id} from {source.name}: {str(e)}")
                counts['errors'] += 1

        return counts

    def merge_event(self, source: EventSource, event: Dict) -> str:
        """Merge a single event with its own lookups.

        Returns:
            'inserted', 'updated', 'unchanged' or 'skipped'

        Raises:
            StoreError: If a lookup or write fails
        """
        tracking = clean_tracking(event.get('tracking_number'))
        if not tracking:
            return 'skipped'

        order_row = None
        if event.get('order_number'):
            if source.match_store:
                order_row = self.store.select_one(
                    'orders', ORDER_COLUMNS,
                    [eq('order_number', str(event['order_number'])), eq('store_id', event.get('store_id'))]
                )
            if order_row is None:
                order_row = self.store.select_one(
                    'orders', ORDER_COLUMNS, [eq('order_number', str(event['order_number']))],
                    order=[asc('order_id')]
                )

        candidate = source.build(event, order_row)
        existing = self.store.select_one(SHIPMENTS_TABLE, '*', [eq('tracking_number', tracking)])
        if existing is None:
            self.store.insert(SHIPMENTS_TABLE, candidate)
            return 'inserted'

        update = missing_field_update(existing, candidate)
        if not update:
            return 'unchanged'
        self.store.update(SHIPMENTS_TABLE, update, [eq('id', existing['id'])])
        return 'updated'

    def merge_page_per_row(self, source: EventSource, events: List[Dict]) -> Dict[str, int]:
        """Merge one page of events one at a time."""
        counts = {'inserted': 0, 'updated': 0, 'skipped': 0, 'errors': 0}
        for event in events:
            try:
                outcome = self.merge_event(source, event)
            except StoreError as e:
                logger.error(
                    f"Failed to merge {source.name} event {event.get('tracking_number')}: {str(e)}"
                )
                counts['errors'] += 1
                continue
            if outcome in counts:
                counts[outcome] += 1
        return counts

    def run_source(self, source: EventSource, since: str) -> Dict[str, Any]:
        """Merge every event from one source created since a timestamp."""
        totals = {'events': 0, 'inserted': 0, 'updated': 0, 'skipped': 0, 'errors': 0}
        merge_page = self.merge_page_batched if self.settings.batched else self.merge_page_per_row

        pages = self._event_pages(source, since)
        while True:
            try:
                events = next(pages)
            except StopIteration:
                break
            except StoreError as e:
                logger.error(f"Failed to fetch {source.table} page: {str(e)}")
                totals['errors'] += 1
                break

            totals['events'] += len(events)
            try:
                counts = merge_page(source, events)
            except StoreError as e:
                logger.error(f"Abandoning {source.name} page of {len(events)} events: {str(e)}")
                totals['errors'] += 1
                continue

            for key, value in counts.items():
                totals[key] += value

        logger.info(
            f"{source.name}: {totals['events']} events, {totals['inserted']} inserted, "
            f"{totals['updated']} filled"
        )
        return totals

    def run(self, since: str) -> Dict[str, Any]:
        """Merge all configured event sources.

        Args:
            since: ISO-8601 start of the lookback window

        Returns:
            Dictionary with per-source counts
        """
        results = {'success': True}
        for source in self.sources:
            totals = self.run_source(source, since)
            results[source.name] = totals
            if totals['errors']:
                results['success'] = False
        return results
