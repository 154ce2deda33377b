"""
clinic_agent/tools/formatters.py
================================

Shared output formatting utilities.

Every tool answers the model with a JSON string.  Store rows contain
``date``/``datetime``/``Decimal``/``UUID`` values that ``json`` cannot encode
on its own; ``to_json`` handles them in one place so all tools serialise the
same way.
"""

import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID


def json_default(value: Any) -> Any:
    """``json.dumps`` fallback for store values."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


def to_json(payload: Any) -> str:
    """Serialise a tool payload, keeping non-ASCII text readable.

    Example
    -------
    >>> to_json({"table": "tasks", "count": 0, "data": []})
    '{"table": "tasks", "count": 0, "data": []}'
    """
    return json.dumps(payload, ensure_ascii=False, default=json_default)
