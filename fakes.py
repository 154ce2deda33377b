"""
Test doubles shared by the test modules.

``InMemoryStore`` evaluates a ``ReadQuery`` over a list of dict rows the way
the SQL rendered by ``render_select`` would, so the engines can be tested end
to end without Snowflake.  ``ScriptedModel`` replays a fixed list of model
turns and records every conversation it was given.
"""

from typing import Any, Dict, List, Optional

from clinic_agent.core.conversation import (
    ConversationTurn,
    TextPart,
    ToolCall,
    ToolCallPart,
)


def _normalize(left: Any, right: Any):
    if isinstance(right, str) and isinstance(left, (int, float)) and not isinstance(left, bool):
        try:
            return left, float(right)
        except ValueError:
            return str(left), right
    if isinstance(right, str) and not isinstance(left, str):
        return str(left).lower() if isinstance(left, bool) else str(left), right
    return left, right


def _matches(row: Dict[str, Any], column: str, operator: str, value: Any) -> bool:
    left = row.get(column)
    if left is None:
        return False
    if operator in ("like", "ilike"):
        needle, haystack = value.strip("%"), str(left)
        if operator == "ilike":
            needle, haystack = needle.lower(), haystack.lower()
        return needle in haystack

    left, right = _normalize(left, value)
    return {
        "eq": left == right,
        "neq": left != right,
        "gt": left > right,
        "gte": left >= right,
        "lt": left < right,
        "lte": left <= right,
    }[operator]


class InMemoryStore:
    """``fetch(read)`` over ``{table: [rows]}``; remembers every read."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, error: Exception = None):
        self.tables = tables or {}
        self.error = error
        self.reads = []

    def fetch(self, read) -> List[Dict[str, Any]]:
        self.reads.append(read)
        if self.error is not None:
            raise self.error

        rows = [
            row for row in self.tables.get(read.table, [])
            if all(_matches(row, p.column, p.operator, p.value) for p in read.predicates)
        ]
        if read.order_by is not None:
            column, ascending = read.order_by
            rows.sort(key=lambda r: r.get(column), reverse=not ascending)
        if read.limit is not None:
            rows = rows[: read.limit]
        if read.columns:
            rows = [{c: row.get(c) for c in read.columns} for row in rows]
        return [dict(row) for row in rows]


def call_turn(*calls: ToolCall) -> ConversationTurn:
    return ConversationTurn(role="model", parts=tuple(ToolCallPart(c) for c in calls))


def text_turn(text: str, token: Optional[bytes] = None) -> ConversationTurn:
    return ConversationTurn(role="model", parts=(TextPart(text, continuation_token=token),))


class ScriptedModel:
    """``ModelClient`` that returns ``turns`` in order.

    When the script runs out, ``repeat_last`` keeps returning the last turn
    (used to simulate a model that never stops calling tools).
    """

    def __init__(self, turns: List[ConversationTurn], repeat_last: bool = False, error: Exception = None):
        self.turns = list(turns)
        self.repeat_last = repeat_last
        self.error = error
        self.calls = []

    async def generate(self, conversation, *, system_instruction, tools):
        self.calls.append({"conversation": conversation, "system_instruction": system_instruction, "tools": tools})
        if self.error is not None:
            raise self.error
        if len(self.turns) > 1 or not self.repeat_last:
            return self.turns.pop(0)
        return self.turns[0]
