"""
clinic_agent/core/agent.py
==========================

The ``Agent`` class: drives the **model → tool call → model** loop that
answers one clinic's analysis question.

Loop
----
::

    AnalysisRequest (tenant_id, message, history, dateRange, files)
        ↓  build_conversation()
    ModelClient.generate(conversation, tools)
        ↓ model decides: answer OR call tools
    ┌───────────────────┐      ┌──────────────────────────────────────┐
    │  Text answer      │  OR  │  ToolCall(name, args, token) × N     │
    │  → return it      │      │  → append model turn verbatim        │
    └───────────────────┘      │  → dispatch each call, in order      │
                               │  → append ToolResults as one turn    │
                               │  → generate again                    │
                               └──────────────────────────────────────┘

After ``max_tool_rounds`` tool rounds the model is called once more without
tools and whatever text it produces is the answer.

The tenant id never enters the conversation.  It travels from the request
straight to ``ToolDispatcher.dispatch``, which binds it for the tool call.

Entry points
------------
- ``Agent.analyze(request)``: used by the HTTP surface (``clinic_agent/api.py``).
- ``Agent.run_async(ctx)``: the ADK entry point.  The tenant id is read from
  session state (``ctx.session.state["tenant_id"]``).
"""

import json
import logging
from datetime import date
from typing import Any, AsyncGenerator, List, Optional

from google.adk.agents import BaseAgent
from google.adk.agents.invocation_context import InvocationContext
from google.adk.events import Event
from google.genai import types
from pydantic import Field, PrivateAttr

from ..config import Config
from ..tool_definitions import ToolDispatcher, mcp
from .conversation import (
    AnalysisRequest,
    AnalysisResponse,
    Conversation,
    ConversationTurn,
    HistoryMessage,
    ToolResult,
)
from .date_parser import parse_date_range
from .mcp_registry import build_gemini_tools_from_mcp
from .model_client import GeminiModelClient, ModelClient, ModelTransportError
from .prompt_loader import build_system_prompt

logger = logging.getLogger(__name__)

# ── Agent identity constants ─────────────────────────────────────────────────
AGENT_NAME = "clinic_analytics_agent"
AGENT_DESCRIPTION = (
    "Clinic analytics agent — answers natural-language questions about one "
    "dental clinic's operational data using read-only data tools."
)
FALLBACK_ANSWER = "분석을 완료할 수 없습니다."
ANALYSIS_ERROR = "AI 분석 중 오류가 발생했습니다."
TENANT_STATE_KEY = "tenant_id"

_HISTORY_ROLES = {"user": "user", "assistant": "model"}


# ── Conversation assembly ────────────────────────────────────────────────────

def date_hint(start_date: str, end_date: str) -> str:
    return f"\n\n(참고: 분석 기간 {start_date} ~ {end_date})"


def attached_file_block(name: str, summary: str) -> str:
    return f"[ATTACHED_FILE: {name}]\n{summary}\n[/ATTACHED_FILE: {name}]"


def build_user_message(request: AnalysisRequest, today: Optional[date] = None) -> str:
    """Compose the final user turn: message, analysis period, attached files.

    An explicit ``dateRange`` wins; otherwise a date phrase in the message
    (``"최근 3개월"``, ``"26년 1월"``…) is resolved and stated explicitly.
    """
    text = request.message
    date_range = request.date_range.to_dict() if request.date_range else parse_date_range(request.message, today)
    if date_range:
        text += date_hint(date_range["startDate"], date_range["endDate"])

    for attached in request.attached_files or []:
        text += "\n\n" + attached_file_block(attached.name, attached.rendered_summary)
    return text


def build_conversation(request: AnalysisRequest, today: Optional[date] = None) -> Conversation:
    """Prior turns (user/assistant only, blanks skipped) + the new user turn."""
    conversation = Conversation()
    for message in request.conversation_history or []:
        role = _HISTORY_ROLES.get(message.role)
        if role is None or not (message.content or "").strip():
            continue
        turn = (
            ConversationTurn.user_text(message.content)
            if role == "user"
            else ConversationTurn.model_text(message.content)
        )
        conversation = conversation.append(turn)
    return conversation.append(ConversationTurn.user_text(build_user_message(request, today)))


def parse_tool_payload(payload: str) -> Any:
    """Tool functions return JSON strings; hand the model structured data."""
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        return payload


class Agent(BaseAgent):
    """Clinic analytics agent.

    Inherits from ``google.adk.agents.BaseAgent`` for the ADK session and
    event plumbing.  The model and the tool dispatcher are injectable, which
    is how the tests drive the loop with a scripted model and a fake store.

    Attributes
    ----------
    agent_config:
        Application configuration (model, loop cap, Snowflake creds).
    system_prompt:
        ``prompts.md`` with the registry table list filled in.
    gemini_tools:
        ``types.Tool`` list built from the FastMCP registry.
    max_tool_rounds:
        Tool rounds allowed before the final tool-less call.
    """

    model_config = {"extra": "allow", "arbitrary_types_allowed": True}

    agent_config: Optional[Config] = Field(default=None)
    system_prompt: str = Field(default="")
    gemini_tools: list = Field(default_factory=list)
    max_tool_rounds: int = Field(default=10)

    _model: Any = PrivateAttr(default=None)
    _dispatcher: Any = PrivateAttr(default=None)

    def __init__(
        self,
        config: Optional[Config] = None,
        name: str = AGENT_NAME,
        model_client: Optional[ModelClient] = None,
        dispatcher: Optional[ToolDispatcher] = None,
        **kwargs,
    ):
        config = config or Config.from_env()
        gemini_tools = kwargs.pop("gemini_tools", None) or build_gemini_tools_from_mcp(mcp)
        if not gemini_tools:
            raise RuntimeError("No tool declarations could be built from the FastMCP registry")
        super().__init__(
            name=name,
            description=kwargs.pop("description", AGENT_DESCRIPTION),
            agent_config=config,
            system_prompt=kwargs.pop("system_prompt", None) or build_system_prompt(),
            gemini_tools=gemini_tools,
            max_tool_rounds=config.max_tool_rounds,
            **kwargs,
        )
        self._model = model_client or GeminiModelClient(config)
        self._dispatcher = dispatcher or ToolDispatcher()

    # ── Loop ──────────────────────────────────────────────────────────────────

    async def _generate(self, conversation: Conversation, with_tools: bool = True) -> ConversationTurn:
        return await self._model.generate(
            conversation,
            system_instruction=self.system_prompt,
            tools=self.gemini_tools if with_tools else None,
        )

    async def _run_tools(self, tenant_id: str, turn: ConversationTurn) -> ConversationTurn:
        results: List[ToolResult] = []
        # Sequential, in the order the model asked for them
        for call in turn.tool_calls:
            payload = await self._dispatcher.dispatch(tenant_id, call.name, call.arguments)
            results.append(ToolResult.for_call(call, parse_tool_payload(payload)))
        return ConversationTurn.tool_results(results)

    async def run_loop(self, tenant_id: str, conversation: Conversation) -> str:
        """Run the tool loop to a final answer.  Raises ``ModelTransportError``."""
        for iteration in range(1, self.max_tool_rounds + 1):
            turn = await self._generate(conversation)
            calls = turn.tool_calls
            if not calls:
                logger.info("Final answer after %d model call(s)", iteration)
                return turn.text.strip() or FALLBACK_ANSWER

            logger.info("Iteration %d: %d tool call(s) %s", iteration, len(calls), [c.name for c in calls])
            conversation = conversation.append(turn)
            conversation = conversation.append(await self._run_tools(tenant_id, turn))

        logger.warning("Tool round cap (%d) reached; requesting a final answer", self.max_tool_rounds)
        turn = await self._generate(conversation, with_tools=False)
        return turn.text.strip() or FALLBACK_ANSWER

    async def analyze(self, request: AnalysisRequest, today: Optional[date] = None) -> AnalysisResponse:
        """Answer ``request`` for its tenant.

        Never raises for model failures: they come back as
        ``AnalysisResponse(message="", error=...)``.
        """
        if not (request.tenant_id or "").strip():
            return AnalysisResponse(message="", error="클리닉 ID가 필요합니다.")

        logger.info("Analysis started | tenant=%s | history=%d", request.tenant_id,
                    len(request.conversation_history or []))
        conversation = build_conversation(request, today)
        try:
            answer = await self.run_loop(request.tenant_id, conversation)
        except ModelTransportError as e:
            logger.error("Analysis failed for tenant %s: %s", request.tenant_id, e)
            return AnalysisResponse(message="", error=str(e) or ANALYSIS_ERROR)
        return AnalysisResponse(message=answer)

    # ── ADK entry point ───────────────────────────────────────────────────────

    def _get_history(self, ctx: InvocationContext) -> List[HistoryMessage]:
        """Earlier turns of the ADK session as history messages.

        Events of the current invocation (the new user message) are skipped.
        """
        session = getattr(ctx, "session", None)
        history = []
        for event in (session.events if session and session.events else []):
            if event.invocation_id == ctx.invocation_id or not event.content:
                continue
            text = _content_text(event.content)
            if text:
                role = "assistant" if event.author == self.name else "user"
                history.append(HistoryMessage(role=role, content=text))
        return history

    def _reply(self, ctx: InvocationContext, text: str) -> Event:
        return Event(
            author=self.name,
            invocation_id=ctx.invocation_id,
            content=types.Content(role="model", parts=[types.Part(text=text)]),
        )

    async def run_async(self, ctx: InvocationContext) -> AsyncGenerator[Event, None]:
        """ADK turn: read tenant from session state, analyze, yield the answer."""
        user_text = _content_text(ctx.user_content)
        state = ctx.session.state if ctx.session else {}
        tenant_id = state.get(TENANT_STATE_KEY)

        logger.info("run_async started | invocation_id=%s", ctx.invocation_id)
        if not user_text:
            yield self._reply(ctx, "메시지를 입력해주세요.")
            return
        if not tenant_id:
            yield self._reply(ctx, "클리닉 ID가 필요합니다.")
            return

        request = AnalysisRequest(
            tenant_id=tenant_id,
            message=user_text,
            conversation_history=self._get_history(ctx),
        )
        response = await self.analyze(request)
        yield self._reply(ctx, response.message or ANALYSIS_ERROR)


def _content_text(content: Optional[types.Content]) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(p.text for p in (content.parts or []) if p.text and not p.thought).strip()


# ── Factory & module-level root_agent ────────────────────────────────────────

def create_agent(config: Optional[Config] = None) -> Agent:
    """Build the agent from environment configuration."""
    return Agent(config or Config.from_env())


# ADK discovers the agent via this module-level variable.
root_agent = create_agent()
