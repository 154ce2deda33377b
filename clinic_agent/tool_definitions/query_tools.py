"""
clinic_agent/tool_definitions/query_tools.py
============================================

The two data tools: ``query_table`` (filtered rows) and ``aggregate_data``
(grouped reductions).

Both are generic.  Neither contains per-table logic nor accepts SQL from the
model: the model describes *what* it wants (table, columns, filters, date
range) and the engines in ``tools/`` build a validated, tenant-scoped read
from that description.

The tenant is read from ``context.current_tenant()``, which only the
dispatcher binds.  Errors are raised as ``QueryError`` subclasses and turned
into JSON payloads by the dispatcher.
"""

import logging
from typing import List, Optional

from ..tools.formatters import to_json
from ..tools.specs import (
    DEFAULT_LIMIT,
    AggregationItem,
    AggregationSpec,
    DateRange,
    FilterClause,
    OrderBy,
    QuerySpec,
)
from . import context
from .registry import mcp

logger = logging.getLogger(__name__)


async def query_table(
    table_name: str,
    select_columns: Optional[str] = None,
    filters: Optional[List[FilterClause]] = None,
    date_range: Optional[DateRange] = None,
    order_by: Optional[OrderBy] = None,
    limit: int = DEFAULT_LIMIT,
) -> str:
    """특정 테이블에서 데이터를 조회합니다. 필터 조건과 정렬을 지정할 수 있습니다.

    - table_name: 조회할 테이블 이름
    - select_columns: 조회할 컬럼들 (쉼표로 구분, 예: "id, name, date"). 비워두면 모든 컬럼.
    - filters: 필터 조건 배열 (모두 AND로 결합)
    - date_range: 날짜 범위 필터 (테이블의 날짜 컬럼에 자동 적용)
    - order_by: 정렬 조건 (기본: 날짜 컬럼 내림차순)
    - limit: 조회할 최대 행 수 (기본 100, 최대 100)
    """
    spec = QuerySpec(
        table=table_name,
        select_columns=select_columns,
        filters=filters or [],
        date_range=date_range,
        order_by=order_by,
        limit=limit,
    )
    toolkit = context.get_toolkit()
    result = await toolkit.query_builder.execute(context.current_tenant(), spec)
    return to_json(result)


async def aggregate_data(
    table_name: str,
    aggregations: List[AggregationItem],
    group_by: Optional[List[str]] = None,
    filters: Optional[List[FilterClause]] = None,
    date_range: Optional[DateRange] = None,
) -> str:
    """테이블 데이터를 집계합니다 (합계, 평균, 개수, 최소, 최대).

    - table_name: 집계할 테이블 이름
    - aggregations: 집계 함수 배열 (column, function, alias)
    - group_by: 그룹화할 컬럼 배열 (비워두면 전체 집계)
    - filters: 필터 조건 배열
    - date_range: 날짜 범위 필터

    숫자가 아닌 값은 0으로 계산되며, avg는 그룹의 전체 행 수로 나눕니다.
    """
    spec = AggregationSpec(
        table=table_name,
        aggregations=aggregations,
        group_by=group_by or [],
        filters=filters or [],
        date_range=date_range,
    )
    toolkit = context.get_toolkit()
    result = await toolkit.aggregator.execute(context.current_tenant(), spec)
    return to_json(result)


mcp.tool(query_table)
mcp.tool(aggregate_data)
