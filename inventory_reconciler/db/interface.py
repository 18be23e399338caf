# inventory_reconciler/db/interface.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import DateTime, MetaData, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from inventory_reconciler.exceptions import StoreError
from inventory_reconciler.utils.date_utils import parse_timestamp

Row = Dict[str, Any]


@dataclass(frozen=True)
class Filter:
    """A single column predicate, e.g. Filter('voided', 'is_not_true')."""
    column: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class OrderBy:
    column: str
    descending: bool = False
    nulls_last: bool = False


def eq(column, value):
    return Filter(column, 'eq', value)


def neq(column, value):
    return Filter(column, 'neq', value)


def gte(column, value):
    return Filter(column, 'gte', value)


def lte(column, value):
    return Filter(column, 'lte', value)


def in_(column, values):
    return Filter(column, 'in', tuple(values))


def is_null(column):
    return Filter(column, 'is_null')


def not_null(column):
    return Filter(column, 'not_null')


def is_not_true(column):
    """Matches false and null, i.e. SQL ``IS NOT TRUE``."""
    return Filter(column, 'is_not_true')


def ilike(column, pattern):
    return Filter(column, 'ilike', pattern)


def asc(column):
    return OrderBy(column, False)


def desc(column, nulls_last=False):
    return OrderBy(column, True, nulls_last)


class StoreInterface(ABC):
    """Abstract row-store interface shared by every job.

    All methods raise StoreError on failure; callers decide whether to skip the
    row, abandon the page, or stop the job.
    """

    @abstractmethod
    def select(
        self,
        table: str,
        columns: str = '*',
        filters: Sequence[Filter] = (),
        order: Sequence[OrderBy] = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Row]:
        """Select rows from a table."""
        pass

    @abstractmethod
    def insert(self, table: str, rows: Union[Row, List[Row]]) -> None:
        """Insert one row or a batch of rows."""
        pass

    @abstractmethod
    def update(self, table: str, values: Row, filters: Sequence[Filter]) -> int:
        """Update the rows matching filters; returns the affected row count."""
        pass

    @abstractmethod
    def upsert(self, table: str, row: Row, on_conflict: Sequence[str]) -> None:
        """Insert or update a row on a conflict key.

        Raises StoreError when the backend cannot honour the conflict key.
        """
        pass

    def select_one(
        self,
        table: str,
        columns: str = '*',
        filters: Sequence[Filter] = (),
        order: Sequence[OrderBy] = ()
    ) -> Optional[Row]:
        """Select the first matching row or None."""
        rows = self.select(table, columns, filters, order, limit=1)
        return rows[0] if rows else None


class SupabaseStore(StoreInterface):
    """Supabase (PostgREST) implementation."""

    def __init__(self, client):
        """Initialize with Supabase client."""
        self.client = client

    def _apply_filters(self, query, filters: Iterable[Filter]):
        for f in filters:
            if f.op == 'eq':
                query = query.is_(f.column, 'null') if f.value is None else query.eq(f.column, f.value)
            elif f.op == 'neq':
                query = query.neq(f.column, f.value)
            elif f.op == 'gte':
                query = query.gte(f.column, f.value)
            elif f.op == 'lte':
                query = query.lte(f.column, f.value)
            elif f.op == 'in':
                query = query.in_(f.column, list(f.value))
            elif f.op == 'is_null':
                query = query.is_(f.column, 'null')
            elif f.op == 'not_null':
                query = query.not_.is_(f.column, 'null')
            elif f.op == 'is_not_true':
                query = query.not_.is_(f.column, 'true')
            elif f.op == 'ilike':
                query = query.ilike(f.column, f.value)
            else:
                raise StoreError(f"Unsupported filter operator: {f.op}")
        return query

    def _execute(self, query, action: str, table: str):
        try:
            return query.execute()
        except Exception as e:
            raise StoreError(
                f"Supabase {action} on {table} failed: {str(e)}",
                details={'table': table, 'action': action}
            ) from e

    def select(self, table, columns='*', filters=(), order=(), offset=None, limit=None):
        query = self._apply_filters(self.client.table(table).select(columns), filters)

        for o in order:
            if o.nulls_last:
                query = query.order(o.column, desc=o.descending, nullsfirst=False)
            else:
                query = query.order(o.column, desc=o.descending)

        if offset is not None and limit is not None:
            query = query.range(offset, offset + limit - 1)
        elif limit is not None:
            query = query.limit(limit)

        result = self._execute(query, 'select', table)
        return list(result.data) if result.data else []

    def insert(self, table, rows):
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return
        self._execute(self.client.table(table).insert(rows), 'insert', table)

    def update(self, table, values, filters):
        query = self._apply_filters(self.client.table(table).update(values), filters)
        result = self._execute(query, 'update', table)
        return len(result.data) if result.data else 0

    def upsert(self, table, row, on_conflict):
        query = self.client.table(table).upsert(row, on_conflict=','.join(on_conflict))
        self._execute(query, 'upsert', table)


class SqlAlchemyStore(StoreInterface):
    """SQLAlchemy Core implementation over the tables declared in models.py.

    Timestamps cross this boundary as ISO-8601 strings, the same shape PostgREST
    returns, so services never see backend-specific types.
    """

    def __init__(self, engine: Engine, metadata: Optional[MetaData] = None):
        if metadata is None:
            from inventory_reconciler.models import Base
            metadata = Base.metadata
        self.engine = engine
        self.metadata = metadata

    @property
    def _is_sqlite(self):
        return self.engine.dialect.name == 'sqlite'

    def _table(self, name):
        table = self.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}", details={'table': name})
        return table

    def _column(self, table, name):
        try:
            return table.c[name.strip()]
        except KeyError:
            raise StoreError(
                f"Unknown column {name!r} on {table.name}",
                details={'table': table.name, 'column': name}
            )

    def _to_db(self, column, value):
        if value is None or not isinstance(column.type, DateTime):
            return value
        moment = parse_timestamp(value) if isinstance(value, str) else value
        if not isinstance(moment, datetime):
            raise StoreError(f"Invalid timestamp for {column.name}: {value!r}")
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc)
        # SQLite has no timezone support; store naive UTC.
        return moment.replace(tzinfo=None) if self._is_sqlite else moment

    @staticmethod
    def _from_db(value):
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.isoformat()
        return value

    def _row_values(self, table, row: Row) -> Row:
        return {key: self._to_db(self._column(table, key), value) for key, value in row.items()}

    def _clause(self, table, f: Filter):
        column = self._column(table, f.column)
        if f.op == 'eq':
            return column.is_(None) if f.value is None else column == self._to_db(column, f.value)
        if f.op == 'neq':
            return column != self._to_db(column, f.value)
        if f.op == 'gte':
            return column >= self._to_db(column, f.value)
        if f.op == 'lte':
            return column <= self._to_db(column, f.value)
        if f.op == 'in':
            return column.in_([self._to_db(column, v) for v in f.value])
        if f.op == 'is_null':
            return column.is_(None)
        if f.op == 'not_null':
            return column.is_not(None)
        if f.op == 'is_not_true':
            return column.is_not(True)
        if f.op == 'ilike':
            return column.ilike(f.value)
        raise StoreError(f"Unsupported filter operator: {f.op}")

    def select(self, table, columns='*', filters=(), order=(), offset=None, limit=None):
        tbl = self._table(table)
        if columns.strip() == '*':
            selected = list(tbl.c)
        else:
            selected = [self._column(tbl, name) for name in columns.split(',')]

        stmt = select(*selected).where(*[self._clause(tbl, f) for f in filters])
        for o in order:
            column = self._column(tbl, o.column)
            clause = column.desc() if o.descending else column.asc()
            stmt = stmt.order_by(clause.nulls_last() if o.nulls_last else clause)
        if offset is not None:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Select on {table} failed: {str(e)}", details={'table': table}) from e

        return [{key: self._from_db(value) for key, value in row.items()} for row in rows]

    def insert(self, table, rows):
        tbl = self._table(table)
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return
        values = [self._row_values(tbl, row) for row in rows]
        try:
            with self.engine.begin() as conn:
                # One statement per row: rows may carry different key sets.
                for row in values:
                    conn.execute(insert(tbl).values(**row))
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into {table} failed: {str(e)}", details={'table': table}) from e

    def update(self, table, values, filters):
        tbl = self._table(table)
        stmt = (
            update(tbl)
            .where(*[self._clause(tbl, f) for f in filters])
            .values(**self._row_values(tbl, values))
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Update on {table} failed: {str(e)}", details={'table': table}) from e
        return result.rowcount or 0

    def upsert(self, table, row, on_conflict):
        tbl = self._table(table)
        dialect = self.engine.dialect.name
        if dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            raise StoreError(f"Upsert is not supported on {dialect}", details={'table': table})

        values = self._row_values(tbl, row)
        updates = [key for key in values if key not in on_conflict]
        try:
            stmt = dialect_insert(tbl).values(**values)
            if updates:
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(on_conflict),
                    set_={key: stmt.excluded[key] for key in updates}
                )
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=list(on_conflict))
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except (SQLAlchemyError, ValueError) as e:
            raise StoreError(f"Upsert on {table} failed: {str(e)}", details={'table': table}) from e
