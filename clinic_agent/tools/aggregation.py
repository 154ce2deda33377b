"""
clinic_agent/tools/aggregation.py
=================================

Grouped and global reductions computed in-process.

The engine fetches the full tenant-scoped row set once, through the query
builder's ``scoped_read``, and reduces it in Python.  This keeps behaviour
identical across tables with very different shapes and avoids generating
``GROUP BY`` SQL.  The fetch has no row limit; see DESIGN.md.

Numeric coercion
----------------
Values are coerced with ``to_number``: missing, blank and non-numeric
values count as ``0`` rather than being skipped.  ``avg`` divides by the
partition size, so a sparsely populated column averages lower than the mean
of its present values.  ``count`` counts rows and ignores the column.
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from .query_builder import QueryBuilder, require_column
from .specs import AggregationItem, AggregationSpec

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "조건에 맞는 데이터가 없습니다."


def to_number(value: Any) -> float:
    """Coerce a cell to a number; anything unusable becomes ``0``."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, (int, float)):
        return 0 if isinstance(value, float) and not math.isfinite(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return number if math.isfinite(number) else 0
    return 0


def reduce_rows(rows: Sequence[Dict[str, Any]], item: AggregationItem) -> Any:
    """Apply one reducer to a non-empty partition."""
    if item.function == "count":
        return len(rows)

    values = [to_number(row.get(item.column)) for row in rows]
    if item.function == "sum":
        return sum(values)
    if item.function == "avg":
        return sum(values) / len(rows)
    if item.function == "min":
        return min(values)
    if item.function == "max":
        return max(values)
    raise ValueError(f"Unsupported aggregate function: {item.function}")


def empty_result(item: AggregationItem) -> Any:
    return 0 if item.function == "count" else None


def partition(rows: Iterable[Dict[str, Any]], group_by: Sequence[str]) -> Dict[Tuple, List[Dict[str, Any]]]:
    """Group rows by the tuple of their ``group_by`` values (insertion order)."""
    groups: Dict[Tuple, List[Dict[str, Any]]] = {}
    for row in rows:
        key = tuple(_hashable(row.get(column)) for column in group_by)
        groups.setdefault(key, []).append(row)
    return groups


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class AggregationEngine:
    """Executes ``AggregationSpec`` reductions over a tenant's rows."""

    def __init__(self, query_builder: QueryBuilder):
        self.query_builder = query_builder

    async def execute(self, tenant_id: str, spec: AggregationSpec) -> Dict[str, Any]:
        table, read = self.query_builder.scoped_read(
            tenant_id, spec.table, spec.filters, spec.date_range
        )
        for column in spec.group_by:
            require_column(table, column)
        for item in spec.aggregations:
            if not (item.function == "count" and item.column == "*"):
                require_column(table, item.column)

        rows = await self.query_builder.fetch(read)
        logger.info(
            "aggregate_data %s | rows=%d | group_by=%s | reducers=%d",
            table.name, len(rows), spec.group_by, len(spec.aggregations),
        )

        if not rows:
            return {
                "table": table.name,
                "count": 0,
                "total_rows": 0,
                "message": NO_DATA_MESSAGE,
                "aggregations": [
                    {item.result_key: empty_result(item) for item in spec.aggregations}
                ],
            }

        if spec.group_by:
            results = []
            for group_rows in partition(rows, spec.group_by).values():
                result = {column: group_rows[0].get(column) for column in spec.group_by}
                for item in spec.aggregations:
                    result[item.result_key] = reduce_rows(group_rows, item)
                results.append(result)
        else:
            results = [{item.result_key: reduce_rows(rows, item) for item in spec.aggregations}]

        return {"table": table.name, "total_rows": len(rows), "aggregations": results}
