"""
clinic_agent/tool_definitions/schema_tools.py
=============================================

Schema discovery tool.

The model calls ``get_database_schema`` to learn which tables exist and what
their columns are called before it builds a ``query_table`` or
``aggregate_data`` call.  The answer comes from the static schema registry;
no store access and no tenant are involved.
"""

import logging
from typing import Optional

from ..tools.formatters import to_json
from ..tools.schema_registry import describe
from .registry import mcp

logger = logging.getLogger(__name__)


async def get_database_schema(table_name: Optional[str] = None) -> str:
    """데이터베이스의 스키마 정보를 조회합니다.

    어떤 테이블이 있고 각 테이블에 어떤 컬럼이 있는지 확인할 수 있습니다.
    table_name을 지정하면 해당 테이블의 컬럼 타입, 날짜 컬럼, 관련 테이블까지
    반환하고, 비워두면 전체 테이블 요약을 반환합니다.
    """
    logger.debug("get_database_schema table_name=%s", table_name)
    return to_json(describe(table_name))


mcp.tool(get_database_schema)
