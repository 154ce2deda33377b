"""
clinic_agent/tools/specs.py
===========================

Typed request specs for the query and aggregation engines.

The model sends free-form JSON arguments.  These Pydantic models are the
single place where those arguments become typed values: the tool signatures
in ``tool_definitions/`` are annotated with them, so FastMCP derives the JSON
schema the model sees from the same classes that validate its calls.
"""

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_LIMIT = 100

Operator = Literal["eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike"]
AggregateFunction = Literal["sum", "avg", "count", "min", "max"]


class FilterClause(BaseModel):
    """One ``column <operator> value`` predicate.  A list of them is ANDed."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(description="필터링할 컬럼명")
    operator: Operator = Field(
        description=(
            "비교 연산자: eq(같음), neq(다름), gt(초과), gte(이상), lt(미만), "
            "lte(이하), like(포함), ilike(대소문자 무시 포함)"
        )
    )
    value: str = Field(description="비교할 값")

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_scalars(cls, value):
        # Models often send numbers or booleans; the store coerces strings.
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class DateRange(BaseModel):
    """Inclusive calendar range applied to a table's date column."""

    model_config = ConfigDict(frozen=True)

    start_date: Optional[date] = Field(default=None, description="시작 날짜 (YYYY-MM-DD 형식)")
    end_date: Optional[date] = Field(default=None, description="종료 날짜 (YYYY-MM-DD 형식)")


class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str = Field(description="정렬할 컬럼명")
    ascending: bool = Field(default=True, description="오름차순 여부 (기본: true)")


class AggregationItem(BaseModel):
    """A ``(column, function, alias)`` reducer."""

    model_config = ConfigDict(frozen=True)

    column: str = Field(description="집계할 컬럼명 (count는 '*' 가능)")
    function: AggregateFunction = Field(description="집계 함수: sum, avg, count, min, max")
    alias: Optional[str] = Field(default=None, description="결과 별칭 (선택)")

    @property
    def result_key(self) -> str:
        return self.alias or f"{self.function}_{self.column}"


class QuerySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str
    select_columns: Optional[str] = None
    filters: List[FilterClause] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
    order_by: Optional[OrderBy] = None
    limit: int = DEFAULT_LIMIT


class AggregationSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: str
    aggregations: List[AggregationItem] = Field(min_length=1)
    group_by: List[str] = Field(default_factory=list)
    filters: List[FilterClause] = Field(default_factory=list)
    date_range: Optional[DateRange] = None
