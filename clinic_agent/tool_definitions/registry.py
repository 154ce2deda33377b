"""
clinic_agent/tool_definitions/registry.py
=========================================

Single ``FastMCP`` server instance shared across all tool definition modules.

How FastMCP is used here
------------------------
1. **Automatic JSON Schema** — Registering a Python function with
   ``mcp.tool(fn)`` makes FastMCP inspect its type hints (including the
   Pydantic models in ``tools/specs.py``) and docstring and build the JSON
   Schema describing the tool's parameters.

2. **Tool Registry** — ``core/mcp_registry.py`` reads this registry and
   converts each entry into a Gemini ``FunctionDeclaration``.  The schema the
   model sees is therefore always derived from the same signatures the
   dispatcher validates calls against.

3. **Singleton** — There is exactly **one** ``mcp`` instance.  All tool
   modules import it from here.

The imports at the bottom make sure every tool is registered before any
consumer reads ``mcp``.
"""

from fastmcp import FastMCP

# The central MCP server.  Every tool registers on this object.
mcp = FastMCP("Clinic Analytics Agent")

# ── Import all tool modules to trigger registration ──────────────────────────
from . import schema_tools  # noqa: E402, F401
from . import query_tools   # noqa: E402, F401
