"""
clinic_agent/tools/toolkit.py
=============================

Dependency Injection (DI) container for the data-access layer.

Tool functions (in ``tool_definitions/``) need the store, the query builder
and the aggregation engine.  ``Toolkit`` creates **one instance of each** and
is handed to the tools through ``tool_definitions.context.get_toolkit()``.

Tests build a ``Toolkit`` around an in-memory store and install it with
``set_toolkit``, so no tool function needs to know where rows come from.
"""

import logging
from typing import Optional

from ..config import Config
from .aggregation import AggregationEngine
from .query_builder import QueryBuilder
from .snowflake_client import SnowflakeClient

logger = logging.getLogger(__name__)


class Toolkit:
    """Wires the store and both engines together into one injectable container.

    Parameters
    ----------
    config:
        A fully populated ``Config`` instance.
    store:
        Optional store override (anything with ``fetch(ReadQuery)``).
        Defaults to a lazily-connected ``SnowflakeClient``.

    Attributes
    ----------
    store:
        The row source used by both engines.
    query_builder:
        Executes ``query_table`` reads.
    aggregator:
        Executes ``aggregate_data`` reductions over the same reads.
    """

    def __init__(self, config: Config, store: Optional[object] = None):
        self.config = config
        self.store = store if store is not None else SnowflakeClient(config)
        self.query_builder = QueryBuilder(self.store, max_rows=config.query_max_rows)
        self.aggregator = AggregationEngine(self.query_builder)
        logger.debug(
            "Toolkit initialised with %s (max_rows=%d)",
            type(self.store).__name__, config.query_max_rows,
        )

    def close(self) -> None:
        """Release the store's connection, if the store holds one."""
        close = getattr(self.store, "close", None)
        if close is not None:
            close()
