# inventory_reconciler/db/__init__.py
from .interface import (
    Filter, OrderBy, StoreInterface, SupabaseStore, SqlAlchemyStore,
    eq, neq, gte, lte, in_, is_null, not_null, is_not_true, ilike, asc, desc
)
from .connection import create_store


def create_all_tables(engine):
    """Create all tables declared in models.py (SQLAlchemy backend only)."""
    from inventory_reconciler.models import Base
    Base.metadata.create_all(bind=engine)


__all__ = [
    'Filter',
    'OrderBy',
    'StoreInterface',
    'SupabaseStore',
    'SqlAlchemyStore',
    'create_store',
    'create_all_tables',
    'eq',
    'neq',
    'gte',
    'lte',
    'in_',
    'is_null',
    'not_null',
    'is_not_true',
    'ilike',
    'asc',
    'desc'
]
