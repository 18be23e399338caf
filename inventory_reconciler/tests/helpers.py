"""
Shared fixtures for store-backed tests.
"""
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from inventory_reconciler.db import SqlAlchemyStore, create_all_tables
from inventory_reconciler.config import JobSettings
from datetime import timedelta

SINCE = '2020-01-01T00:00:00+00:00'


def make_store():
    """In-memory SQLite store with every table created."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
    create_all_tables(engine)
    return SqlAlchemyStore(engine)


def settings(page_size=500, max_pages=20, batched=True, lookback=timedelta(days=14)):
    return JobSettings(
        interval_minutes=10,
        page_size=page_size,
        max_pages=max_pages,
        lookback=lookback,
        batched=batched
    )


def seed_locations(store):
    """Pickable, BackStock, Production and Batch locations with ids 1-4."""
    store.insert('inventory_locations', [
        {'id': 1, 'code': 'A-01', 'type': 'Pickable'},
        {'id': 2, 'code': 'BS-01', 'type': 'BackStock'},
        {'id': 3, 'code': 'PR-01', 'type': 'Production'},
        {'id': 4, 'code': 'BT-01', 'type': 'Batch'},
    ])
