"""
clinic_agent/core/conversation.py
=================================

Provider-neutral conversation state for one analysis request.

A conversation is an ordered tuple of ``ConversationTurn`` values.  Turns
and parts are frozen; ``Conversation.append`` returns a new conversation, so
the loop in ``core/agent.py`` passes state around as a value and concurrent
requests can never share it.

Continuation tokens
-------------------
Some providers attach opaque reasoning state to the parts of a model turn
(Gemini calls it a *thought signature*).  It must be sent back unchanged or
the model loses track of its own multi-step reasoning.  ``ToolCall`` and
``TextPart`` carry it as ``continuation_token`` and nothing in this package
ever looks inside it.  ``ToolResult`` copies the token of the call it
answers.

Request / response
------------------
``AnalysisRequest`` and ``AnalysisResponse`` are the Pydantic models of the
public contract (HTTP body and ``Agent.analyze`` argument).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .date_parser import DateRangeDict


# ── Parts ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    continuation_token: Optional[bytes] = None
    call_id: Optional[str] = None


@dataclass(frozen=True)
class ToolResult:
    name: str
    response: Any
    continuation_token: Optional[bytes] = None
    call_id: Optional[str] = None

    @classmethod
    def for_call(cls, call: ToolCall, response: Any) -> "ToolResult":
        """Answer ``call``, carrying its token and id over unchanged."""
        return cls(
            name=call.name,
            response=response,
            continuation_token=call.continuation_token,
            call_id=call.call_id,
        )


@dataclass(frozen=True)
class TextPart:
    text: str
    thought: bool = False
    continuation_token: Optional[bytes] = None


@dataclass(frozen=True)
class ToolCallPart:
    call: ToolCall


@dataclass(frozen=True)
class ToolResultPart:
    result: ToolResult


Part = Union[TextPart, ToolCallPart, ToolResultPart]


# ── Turns ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConversationTurn:
    role: Literal["user", "model"]
    parts: Tuple[Part, ...] = ()

    @classmethod
    def user_text(cls, text: str) -> "ConversationTurn":
        return cls(role="user", parts=(TextPart(text),))

    @classmethod
    def model_text(cls, text: str) -> "ConversationTurn":
        return cls(role="model", parts=(TextPart(text),))

    @classmethod
    def tool_results(cls, results: List[ToolResult]) -> "ConversationTurn":
        return cls(role="user", parts=tuple(ToolResultPart(r) for r in results))

    @property
    def tool_calls(self) -> List[ToolCall]:
        return [p.call for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def text(self) -> str:
        """Visible text of the turn (thought summaries excluded)."""
        return "\n".join(
            p.text for p in self.parts if isinstance(p, TextPart) and not p.thought and p.text
        )


@dataclass(frozen=True)
class Conversation:
    turns: Tuple[ConversationTurn, ...] = ()

    def append(self, turn: ConversationTurn) -> "Conversation":
        return Conversation(self.turns + (turn,))

    def __len__(self) -> int:
        return len(self.turns)

    def __iter__(self):
        return iter(self.turns)

    @property
    def last(self) -> Optional[ConversationTurn]:
        return self.turns[-1] if self.turns else None


# ── Public request / response ────────────────────────────────────────────────

class HistoryMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str
    content: Optional[str] = ""


class RequestDateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")

    def to_dict(self) -> DateRangeDict:
        return {"startDate": self.start_date, "endDate": self.end_date}


class AttachedFile(BaseModel):
    """A file already parsed upstream; only its rendered summary is used."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    rendered_summary: str = Field(default="", alias="renderedSummary")


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str
    message: str
    conversation_history: Optional[List[HistoryMessage]] = Field(default=None, alias="conversationHistory")
    date_range: Optional[RequestDateRange] = Field(default=None, alias="dateRange")
    attached_files: Optional[List[AttachedFile]] = Field(default=None, alias="attachedFiles")


class AnalysisResponse(BaseModel):
    message: str
    error: Optional[str] = None
