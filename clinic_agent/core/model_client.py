"""
clinic_agent/core/model_client.py
=================================

The seam between the conversation loop and the LLM provider.

``ModelClient`` is the protocol the loop depends on: one ``generate`` call
takes the whole provider-neutral ``Conversation`` and returns the model's
next ``ConversationTurn``.  ``GeminiModelClient`` is the production
implementation on top of the ``google-genai`` SDK; tests use a scripted
client instead.

Mapping to Gemini
-----------------
====================  ==============================================
Conversation part     ``google.genai.types.Part``
====================  ==============================================
``TextPart``          ``Part(text=..., thought=..., thought_signature=...)``
``ToolCallPart``      ``Part(function_call=FunctionCall(...), thought_signature=...)``
``ToolResultPart``    ``Part(function_response=FunctionResponse(...))``
====================  ==============================================

``thought_signature`` is Gemini's continuation token.  It is read from the
response and written back byte for byte on the next request.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

from google import genai
from google.genai import types

from ..config import Config
from .conversation import (
    Conversation,
    ConversationTurn,
    TextPart,
    ToolCall,
    ToolCallPart,
    ToolResultPart,
)

logger = logging.getLogger(__name__)


class ModelTransportError(Exception):
    """The model could not be reached or returned an unusable response."""


class ModelClient(Protocol):
    async def generate(
        self,
        conversation: Conversation,
        *,
        system_instruction: str,
        tools: Optional[List[types.Tool]],
    ) -> ConversationTurn:
        ...


# ── Conversion helpers ───────────────────────────────────────────────────────

def _response_dict(response: Any) -> Dict[str, Any]:
    # FunctionResponse.response must be an object
    return response if isinstance(response, dict) else {"result": response}


def part_to_gemini(part) -> types.Part:
    if isinstance(part, TextPart):
        return types.Part(
            text=part.text,
            thought=part.thought or None,
            thought_signature=part.continuation_token,
        )
    if isinstance(part, ToolCallPart):
        call = part.call
        return types.Part(
            function_call=types.FunctionCall(id=call.call_id, name=call.name, args=dict(call.arguments)),
            thought_signature=call.continuation_token,
        )
    if isinstance(part, ToolResultPart):
        result = part.result
        return types.Part(
            function_response=types.FunctionResponse(
                id=result.call_id,
                name=result.name,
                response=_response_dict(result.response),
            )
        )
    raise TypeError(f"Unsupported conversation part: {type(part).__name__}")


def turn_to_gemini(turn: ConversationTurn) -> types.Content:
    return types.Content(role=turn.role, parts=[part_to_gemini(p) for p in turn.parts])


def turn_from_gemini(content: Optional[types.Content]) -> ConversationTurn:
    """Convert a Gemini candidate's content into a model ``ConversationTurn``.

    Parts that carry neither text nor a function call (e.g. an empty part
    holding only a signature) are kept as empty ``TextPart``s so the token is
    replayed with the turn.
    """
    parts = []
    for part in (content.parts if content and content.parts else []):
        token = part.thought_signature
        if part.function_call:
            fc = part.function_call
            parts.append(ToolCallPart(ToolCall(
                name=fc.name,
                arguments=dict(fc.args or {}),
                continuation_token=token,
                call_id=fc.id,
            )))
        elif part.text is not None or token:
            parts.append(TextPart(text=part.text or "", thought=bool(part.thought), continuation_token=token))
    return ConversationTurn(role="model", parts=tuple(parts))


# ── Gemini implementation ────────────────────────────────────────────────────

class GeminiModelClient:
    """``ModelClient`` backed by ``google.genai.Client``.

    The SDK client is built lazily on first use so that ``.env`` is loaded
    before credentials are read.

    Auth strategy (in priority order):

    1. ``GOOGLE_API_KEY``         → API key auth (local dev)
    2. Vertex AI project/location → ADC auth (production)
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config.from_env()
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            api_key = self.config.google_api_key or os.getenv("GOOGLE_API_KEY")
            if api_key:
                self._client = genai.Client(api_key=api_key)
            else:
                project = self.config.google_cloud_project or os.getenv("GOOGLE_CLOUD_PROJECT")
                location = self.config.google_cloud_location or "us-central1"
                self._client = genai.Client(vertexai=True, project=project, location=location)
        return self._client

    async def generate(
        self,
        conversation: Conversation,
        *,
        system_instruction: str,
        tools: Optional[List[types.Tool]],
    ) -> ConversationTurn:
        gen_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=tools or None,
            temperature=self.config.temperature,
        )
        contents = [turn_to_gemini(turn) for turn in conversation]

        try:
            # Blocking SDK call; keep the event loop free
            response = await asyncio.to_thread(
                self.client.models.generate_content,
                model=self.config.model_name,
                contents=contents,
                config=gen_config,
            )
        except Exception as e:
            logger.error("Gemini request failed: %s", e)
            raise ModelTransportError(str(e)) from e

        if not response.candidates:
            logger.warning("Gemini returned no candidates")
            return ConversationTurn(role="model")
        return turn_from_gemini(response.candidates[0].content)
