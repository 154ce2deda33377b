"""
clinic_agent/core/mcp_registry.py
=================================

Turns the FastMCP tool registry into Gemini ``FunctionDeclaration`` objects.

    FastMCP tool registry (three data tools)
        ↓  ``build_gemini_tools_from_mcp()``
    List[types.FunctionDeclaration]
        ↓  wrapped in types.Tool
    Passed to ``GenerateContentConfig.tools``

FastMCP derives each tool's parameter schema from its Python signature with
Pydantic.  The nested spec models (filters, date ranges, reducers) come out
as ``$ref`` pointers into ``$defs`` and every optional argument as an
``anyOf`` with ``null``; Gemini accepts neither, so ``sanitize_schema``
rewrites them into plain nested objects.

The tool map is read through FastMCP's public async listing
(``list_tools()``, or ``get_tools()`` on older releases).
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from google.genai import types

logger = logging.getLogger(__name__)


# String formats Gemini's Schema accepts; anything else (e.g. "date") is dropped
SUPPORTED_FORMATS = {"enum", "date-time", "int32", "int64", "float", "double"}


def _resolve_ref(ref: str, defs: dict[str, Any]) -> dict[str, Any]:
    name = ref.rsplit("/", 1)[-1]
    if name not in defs:
        raise KeyError(f"Unresolvable schema reference: {ref}")
    return defs[name]


def _collapse_nullable(schema: dict[str, Any]) -> dict[str, Any]:
    """Turn ``anyOf: [X, {"type": "null"}]`` into ``X`` with ``nullable: true``."""
    variants = schema.get("anyOf")
    if not isinstance(variants, list):
        return schema
    non_null = [v for v in variants if not (isinstance(v, dict) and v.get("type") == "null")]
    if len(non_null) != 1 or len(non_null) == len(variants):
        return schema
    merged = {k: v for k, v in schema.items() if k != "anyOf"}
    merged.update({k: v for k, v in non_null[0].items() if k not in merged})
    merged["nullable"] = True
    return merged


def sanitize_schema(
    schema: dict[str, Any],
    is_root: bool = True,
    defs: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Recursively rewrite a Pydantic JSON Schema into Gemini's subset.

    - ``$ref`` pointers are inlined from the root ``$defs`` (Gemini has no
      references), and ``$defs`` itself is dropped.
    - ``anyOf`` with a ``null`` branch (every ``Optional[...]`` argument)
      becomes the non-null branch marked ``nullable``.
    - ``additionalProperties``, the top-level ``title``, ``default: null``
      and unsupported ``format`` values are stripped.

    Parameters
    ----------
    schema:
        The raw JSON Schema dict produced by FastMCP / Pydantic.
    is_root:
        ``True`` when processing the top-level schema object.
    defs:
        Definitions used for ``$ref`` lookup; taken from the root schema.

    Returns
    -------
    dict
        A cleaned copy of the schema safe for Gemini.
    """
    if not isinstance(schema, dict):
        return schema

    if is_root:
        defs = schema.get("$defs", {})
    defs = defs or {}

    schema = _collapse_nullable(schema)
    if "$ref" in schema:
        target = _resolve_ref(schema["$ref"], defs)
        schema = {**target, **{k: v for k, v in schema.items() if k != "$ref"}}

    clean = {}
    for key, value in schema.items():
        if key in ("additionalProperties", "$defs"):
            continue
        if is_root and key == "title":
            continue
        if key == "default" and value is None:
            continue
        if key == "format" and value not in SUPPORTED_FORMATS:
            continue

        if isinstance(value, dict):
            clean[key] = (
                {k: sanitize_schema(v, is_root=False, defs=defs) for k, v in value.items()}
                if key == "properties"
                else sanitize_schema(value, is_root=False, defs=defs)
            )
        elif isinstance(value, list):
            clean[key] = [
                sanitize_schema(i, is_root=False, defs=defs) if isinstance(i, dict) else i
                for i in value
            ]
        else:
            clean[key] = value

    return clean


async def _list_registered_tools(mcp) -> dict[str, Any]:
    # list_tools() is the public listing on current FastMCP releases; older
    # 2.x releases expose get_tools() returning {name: tool}.
    if hasattr(mcp, "list_tools"):
        listed = await mcp.list_tools()
    else:
        listed = await mcp.get_tools()
    if isinstance(listed, dict):
        return dict(listed)
    return {tool.name: tool for tool in listed}


def _load_tools_map(mcp) -> dict[str, Any]:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_list_registered_tools(mcp))
    # Called from inside a running loop (ADK, FastAPI startup): asyncio.run
    # would fail here, so run it on a worker thread.
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, _list_registered_tools(mcp)).result()


def _tool_parameters(tool) -> dict[str, Any]:
    parameters = getattr(tool, "parameters", None)
    if parameters is None:
        parameters = getattr(tool, "inputSchema", None)
    return parameters or {"type": "object", "properties": {}}


def build_gemini_tools_from_mcp(mcp) -> list[types.Tool]:
    """Convert every registered FastMCP tool into a Gemini declaration.

    Returns a single-element list holding one ``types.Tool``, or an empty
    list when nothing could be converted.  Conversion failures are logged
    per tool; the agent then runs without that tool.
    """
    if mcp is None:
        logger.error("FastMCP instance is None — cannot build tools.")
        return []

    try:
        tools_map = _load_tools_map(mcp)
    except Exception as e:
        logger.error("Failed to load MCP tools: %s", e)
        return []

    if not tools_map:
        logger.warning("No MCP tools found in registry.")
        return []

    declarations = []
    for name, tool in tools_map.items():
        try:
            declarations.append(
                types.FunctionDeclaration(
                    name=name,
                    description=tool.description,
                    parameters=sanitize_schema(_tool_parameters(tool)),
                )
            )
        except Exception as e:
            logger.error("Failed to convert tool '%s' to FunctionDeclaration: %s", name, e)

    if not declarations:
        logger.warning("All tool conversions failed — no FunctionDeclarations built.")
        return []

    logger.info("Registered %d MCP tools with Gemini: %s", len(declarations), [d.name for d in declarations])
    return [types.Tool(function_declarations=declarations)]
