"""
clinic_agent/tools/query_builder.py
===================================

Translates a ``QuerySpec`` into a tenant-scoped read and executes it.

How a read is built
-------------------
1. Resolve the table in the schema registry.
2. Add ``clinic_id = <tenant>`` unconditionally.  The tenant comes from the
   caller, never from the spec, so a model that forgets or fakes a tenant
   filter still only sees its own clinic.
3. Translate ``date_range`` into two inclusive bounds on the table's date
   column (full-day bounds for timestamp columns).
4. Translate each filter; ``like``/``ilike`` become ``%value%`` matches.
5. Order by the explicit column, else newest first on the date column.
6. Clamp the limit.

Steps 1-4 are shared with the aggregation engine through ``scoped_read``,
so both tools see exactly the same rows for the same filters.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .error_handler import ErrorHandler, QueryError, StoreError, UnknownTableError
from .schema_registry import TENANT_COLUMN, TableDescriptor, get_table
from .specs import DEFAULT_LIMIT, DateRange, FilterClause, QuerySpec

logger = logging.getLogger(__name__)

MAX_ROWS = 100

# "users(name, role)" style embedded selects are not executed.
_EMBEDDED_SELECT = re.compile(r"\w+\s*\(")


@dataclass(frozen=True)
class Predicate:
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class ReadQuery:
    """A validated, tenant-scoped read, ready to be rendered by a store."""

    table: str
    columns: Tuple[str, ...] = ()
    predicates: Tuple[Predicate, ...] = ()
    order_by: Optional[Tuple[str, bool]] = None
    limit: Optional[int] = None


def resolve_table(table_name: str) -> TableDescriptor:
    table = get_table(table_name)
    if table is None:
        raise UnknownTableError(table_name)
    return table


def require_column(table: TableDescriptor, column: str) -> str:
    """Return ``column`` if the table declares it, else raise ``StoreError``."""
    if not table.has_column(column):
        raise StoreError(
            f'column "{column}" does not exist on table "{table.name}"',
            hint="Available columns: " + ", ".join(table.columns),
        )
    return column


def parse_select_columns(table: TableDescriptor, select_columns: Optional[str]) -> Tuple[str, ...]:
    """Split a comma separated projection; ``()`` means all columns."""
    if not select_columns or not select_columns.strip():
        return ()
    if _EMBEDDED_SELECT.search(select_columns):
        raise StoreError(
            "embedded joins in select_columns are not supported",
            hint=(
                "Query the related table separately (see the table's joins "
                "in get_database_schema) and match rows by id."
            ),
        )
    names = [name.strip() for name in select_columns.split(",") if name.strip()]
    if "*" in names:
        return ()
    return tuple(require_column(table, name) for name in names)


def date_bounds(table: TableDescriptor, date_range: DateRange) -> List[Predicate]:
    """Inclusive bounds on the table's date column, or ``[]`` if it has none."""
    column = table.date_column
    if column is None:
        return []

    start: Optional[date] = date_range.start_date
    end: Optional[date] = date_range.end_date
    if table.is_timestamp(column):
        start = datetime.combine(start, time.min) if start else None
        end = datetime.combine(end, time.max) if end else None

    bounds = []
    if start is not None:
        bounds.append(Predicate(column, "gte", start))
    if end is not None:
        bounds.append(Predicate(column, "lte", end))
    return bounds


def filter_predicate(table: TableDescriptor, clause: FilterClause) -> Predicate:
    require_column(table, clause.column)
    value: Any = clause.value
    if clause.operator in ("like", "ilike"):
        value = f"%{value}%"
    return Predicate(clause.column, clause.operator, value)


def scoped_predicates(
    tenant_id: str,
    table: TableDescriptor,
    filters: Sequence[FilterClause],
    date_range: Optional[DateRange],
) -> Tuple[Predicate, ...]:
    """Tenant predicate first, then date bounds, then the caller's filters."""
    if not tenant_id:
        raise ValueError("tenant_id is required for every read")

    predicates = [Predicate(TENANT_COLUMN, "eq", tenant_id)]
    if date_range is not None:
        predicates.extend(date_bounds(table, date_range))
    predicates.extend(filter_predicate(table, clause) for clause in filters)
    return tuple(predicates)


def clamp_limit(limit: Optional[int], max_rows: int = MAX_ROWS) -> int:
    if limit is None:
        limit = DEFAULT_LIMIT
    return max(1, min(int(limit), max_rows))


class QueryBuilder:
    """Executes ``QuerySpec`` reads against a store.

    Parameters
    ----------
    store:
        Any object with ``fetch(read: ReadQuery) -> list[dict]``
        (``SnowflakeClient`` in production).
    max_rows:
        Hard cap applied to every ``limit``.
    """

    def __init__(self, store, max_rows: int = MAX_ROWS):
        self.store = store
        self.max_rows = max_rows

    def scoped_read(
        self,
        tenant_id: str,
        table_name: str,
        filters: Sequence[FilterClause] = (),
        date_range: Optional[DateRange] = None,
    ) -> Tuple[TableDescriptor, ReadQuery]:
        """Full-row, unlimited read for ``table_name`` scoped to one tenant."""
        table = resolve_table(table_name)
        predicates = scoped_predicates(tenant_id, table, filters, date_range)
        return table, ReadQuery(table=table.name, predicates=predicates)

    def build(self, tenant_id: str, spec: QuerySpec) -> ReadQuery:
        table, read = self.scoped_read(tenant_id, spec.table, spec.filters, spec.date_range)

        if spec.order_by is not None:
            order_by = (require_column(table, spec.order_by.column), spec.order_by.ascending)
        elif table.date_column:
            order_by = (table.date_column, False)
        else:
            order_by = None

        return ReadQuery(
            table=read.table,
            columns=parse_select_columns(table, spec.select_columns),
            predicates=read.predicates,
            order_by=order_by,
            limit=clamp_limit(spec.limit, self.max_rows),
        )

    async def fetch(self, read: ReadQuery) -> List[Dict[str, Any]]:
        """Run a read in a worker thread; store failures become ``StoreError``."""
        try:
            return await asyncio.to_thread(self.store.fetch, read)
        except QueryError:
            raise
        except Exception as e:
            logger.warning("Store read on '%s' failed: %s", read.table, e)
            raise ErrorHandler.to_store_error(e) from e

    async def execute(self, tenant_id: str, spec: QuerySpec) -> Dict[str, Any]:
        """Execute ``spec`` for ``tenant_id``.

        Returns
        -------
        dict
            ``{table, count, data}``.  Zero rows is a normal result.

        Raises
        ------
        UnknownTableError, StoreError
        """
        read = self.build(tenant_id, spec)
        logger.info(
            "query_table %s | filters=%d | limit=%s", read.table, len(spec.filters), read.limit
        )
        rows = await self.fetch(read)
        return {"table": read.table, "count": len(rows), "data": rows}
