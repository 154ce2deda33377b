"""
clinic_agent/tool_definitions/dispatcher.py
===========================================

Routes a model tool call to one of the three tool functions.

The dispatcher is the error boundary between the tools and the conversation
loop: whatever happens inside a tool, ``dispatch`` returns a JSON string the
loop can hand back to the model.  Bad arguments, unknown tables and store
failures all come back as ``{"error": ...}`` payloads so the model can
correct its next call.

Argument parsing
----------------
Each tool function is wrapped with ``pydantic.validate_call``.  The model's
free-form argument dict is validated against the function signature, so
nested filters, date ranges and reducers arrive as the typed models from
``tools/specs.py``.  Extra arguments (a model trying to pass ``tenant_id``,
say) fail validation like any other malformed call.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError, validate_call

from ..tools.error_handler import MalformedToolArgumentsError, QueryError
from ..tools.formatters import to_json
from . import query_tools, schema_tools
from .context import tenant_scope

logger = logging.getLogger(__name__)

TOOL_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "get_database_schema": schema_tools.get_database_schema,
    "query_table": query_tools.query_table,
    "aggregate_data": query_tools.aggregate_data,
}


def _describe_validation_error(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


class ToolDispatcher:
    """Executes named tool calls for one tenant at a time.

    Parameters
    ----------
    tools:
        Optional ``{name: async function}`` override; defaults to the three
        registered data tools.
    """

    def __init__(self, tools: Optional[Mapping[str, Callable[..., Any]]] = None):
        source = tools if tools is not None else TOOL_FUNCTIONS
        self._tools = {name: validate_call(fn) for name, fn in source.items()}

    async def dispatch(self, tenant_id: str, tool_name: str, args: Optional[Mapping[str, Any]]) -> str:
        """Run ``tool_name`` with ``args`` for ``tenant_id`` and return JSON.

        Never raises: every failure is converted into an error payload.
        """
        tool = self._tools.get(tool_name)
        if tool is None:
            logger.warning("Model requested unknown tool: %s", tool_name)
            return to_json({"error": f"Unknown tool: {tool_name}"})

        if args is None:
            args = {}
        if not isinstance(args, Mapping):
            error = MalformedToolArgumentsError(f"Arguments for {tool_name} must be an object")
            return to_json(error.to_payload())

        logger.info("Executing tool: %s | args: %s", tool_name, list(args.keys()))
        try:
            with tenant_scope(tenant_id):
                return await tool(**dict(args))
        except ValidationError as e:
            error = MalformedToolArgumentsError(
                f"Invalid arguments for {tool_name}",
                details=[_describe_validation_error(err) for err in e.errors()],
            )
            logger.info("Rejected %s call: %s", tool_name, error.details)
            return to_json(error.to_payload())
        except QueryError as e:
            logger.info("%s returned %s: %s", tool_name, e.error_type, e.message)
            return to_json(e.to_payload())
        except Exception as e:
            logger.exception("Error executing tool '%s': %s", tool_name, e)
            return to_json({"error": str(e), "type": "ToolExecutionError"})
