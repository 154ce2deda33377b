"""
clinic_agent/tools/snowflake_client.py
======================================

Snowflake connectivity and read execution.

Connection Strategy
-------------------
The client uses a **lazy connection** pattern: the Snowflake connector is not
instantiated until the first read is made.  This avoids failing at import time
if credentials are missing, giving the agent a chance to start and surface a
helpful error on first use instead.

Rendering
---------
The engines never hand this client a SQL string.  They build a ``ReadQuery``
whose identifiers were already checked against the schema registry, and
``render_select`` turns it into SQL text plus a parameter dict.  Identifiers
are quoted verbatim from the registry; every value travels as a bound
``%(name)s`` parameter (the connector's default ``pyformat`` style).
"""

import logging
import threading
from typing import Any, Dict, List, Tuple

import snowflake.connector

from ..config import Config
from .query_builder import ReadQuery

logger = logging.getLogger(__name__)

SQL_OPERATORS = {
    "eq": "=",
    "neq": "<>",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "like": "LIKE",
    "ilike": "ILIKE",
}


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def render_select(read: ReadQuery) -> Tuple[str, Dict[str, Any]]:
    """Render a ``ReadQuery`` as ``(sql, params)``.

    Example
    -------
    >>> render_select(ReadQuery(table="tasks", predicates=(Predicate("clinic_id", "eq", "c1"),), limit=5))
    ('SELECT * FROM "tasks" WHERE "clinic_id" = %(p0)s LIMIT 5', {'p0': 'c1'})
    """
    columns = ", ".join(quote_identifier(c) for c in read.columns) if read.columns else "*"
    sql = f"SELECT {columns} FROM {quote_identifier(read.table)}"

    params: Dict[str, Any] = {}
    clauses = []
    for index, predicate in enumerate(read.predicates):
        name = f"p{index}"
        clauses.append(
            f"{quote_identifier(predicate.column)} {SQL_OPERATORS[predicate.operator]} %({name})s"
        )
        params[name] = predicate.value
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)

    if read.order_by is not None:
        column, ascending = read.order_by
        sql += f" ORDER BY {quote_identifier(column)} {'ASC' if ascending else 'DESC'}"

    if read.limit is not None:
        sql += f" LIMIT {int(read.limit)}"

    return sql, params


class SnowflakeClient:
    """Manages a single Snowflake connection and executes reads.

    Parameters
    ----------
    config:
        Populated ``Config`` instance with all ``SNOWFLAKE_*`` credentials.
    """

    def __init__(self, config: Config):
        self.config = config
        self._conn = None
        self._lock = threading.Lock()

    def connect(self) -> snowflake.connector.SnowflakeConnection:
        """Open (or return the existing) Snowflake connection.

        Raises
        ------
        snowflake.connector.errors.Error
            If the credentials are invalid or the network is unreachable.
        """
        with self._lock:
            if self._conn:
                return self._conn
            logger.info("Opening Snowflake connection to account: %s", self.config.snowflake_account)
            self._conn = snowflake.connector.connect(
                user=self.config.snowflake_user,
                password=self.config.snowflake_password,
                account=self.config.snowflake_account,
                warehouse=self.config.snowflake_warehouse,
                database=self.config.snowflake_database,
                schema=self.config.snowflake_schema,
                role=self.config.snowflake_role,
            )
            return self._conn

    def query(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Execute a parameterised statement and return all rows as dicts.

        Each call opens a new cursor, fetches everything into memory and
        closes the cursor.  Column names come from ``cursor.description``.

        Raises
        ------
        snowflake.connector.errors.ProgrammingError
            On SQL errors or missing objects.
        snowflake.connector.errors.DatabaseError
            On connection or warehouse issues.
        """
        conn = self.connect()
        cursor = conn.cursor()
        try:
            logger.debug("Executing SQL: %.200s | params=%s", sql, list(params))
            cursor.execute(sql, params)
            columns = [col[0] for col in cursor.description]
            results = [dict(zip(columns, row)) for row in cursor.fetchall()]
            logger.info("Query returned %d rows.", len(results))
            return results
        finally:
            cursor.close()

    def fetch(self, read: ReadQuery) -> List[Dict[str, Any]]:
        """Render and execute a ``ReadQuery``."""
        sql, params = render_select(read)
        return self.query(sql, params)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                logger.info("Closing Snowflake connection.")
                self._conn.close()
                self._conn = None
