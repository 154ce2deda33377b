"""
clinic_agent/tools
==================

The **tools** sub-package contains the data-access layer.  Nothing in this
package is visible to the LLM directly.  These are the *internal* building
blocks that the MCP tool functions (in ``tool_definitions/``) use.

Modules
-------
- ``schema_registry.py``  — Immutable catalog of readable tables.
- ``specs.py``            — Pydantic specs for reads and aggregations.
- ``query_builder.py``    — Tenant-scoped, validated reads (``query_table``).
- ``aggregation.py``      — In-process grouped reductions (``aggregate_data``).
- ``snowflake_client.py`` — Snowflake connection and SQL rendering.
- ``error_handler.py``    — Error taxonomy and store-error classification.
- ``toolkit.py``          — Dependency-injection container that wires the
                            store and engines together.
- ``formatters.py``       — JSON serialisation of tool payloads.
"""

from .toolkit import Toolkit  # noqa: F401
from .formatters import to_json  # noqa: F401
