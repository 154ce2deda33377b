"""
clinic_agent/tool_definitions
=============================

This sub-package contains every **MCP tool** that the LLM can invoke.

How tools work
--------------
1. ``registry.py`` creates a single ``FastMCP`` server instance (``mcp``).
2. Each tool module registers its functions with ``mcp.tool(fn)``.  FastMCP
   derives the parameter JSON Schema from the function signature.
3. ``clinic_agent/core/mcp_registry.py`` converts the registry into Gemini
   ``FunctionDeclaration`` objects so the LLM can discover the tools.
4. ``dispatcher.py`` executes the calls the LLM makes, binding the caller's
   tenant and turning every failure into a JSON error payload.

Tools
-----
- ``schema_tools.py`` — ``get_database_schema``
- ``query_tools.py``  — ``query_table``, ``aggregate_data``
"""

from .registry import mcp  # noqa: F401
from .dispatcher import ToolDispatcher  # noqa: F401
