"""
clinic_agent/api.py
===================

HTTP surface for the agent (FastAPI).

Endpoints
---------
``POST /api/ai-analysis``
    Body: ``AnalysisRequest`` (``tenant_id``, ``message``,
    ``conversationHistory``, ``dateRange``, ``attachedFiles``).

    - blank ``message``   → 400 ``{"error": "메시지를 입력해주세요."}``
    - blank ``tenant_id`` → 400 ``{"error": "클리닉 ID가 필요합니다."}``
    - analysis failed     → 500 ``{"message": "", "error": ...}``
    - otherwise           → 200 ``{"message": ...}``

``GET /health``
    ``{"status": "ok"}``

Run locally with ``uvicorn clinic_agent.api:app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .core.conversation import AnalysisRequest
from .tool_definitions import context

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_ERROR = "메시지를 입력해주세요."
MISSING_TENANT_ERROR = "클리닉 ID가 필요합니다."
INTERNAL_ERROR = "AI 분석 중 오류가 발생했습니다."


def create_app(agent=None) -> FastAPI:
    """Build the FastAPI app around ``agent`` (defaults to ``root_agent``)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            # Shared toolkit holds the Snowflake connection
            context.close_toolkit()

    app = FastAPI(title="Clinic Analytics Agent", lifespan=lifespan)
    state = {"agent": agent}

    def get_agent():
        if state["agent"] is None:
            from .core.agent import root_agent
            state["agent"] = root_agent
        return state["agent"]

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/ai-analysis")
    async def ai_analysis(request: AnalysisRequest):
        if not request.message.strip():
            return JSONResponse(status_code=400, content={"error": EMPTY_MESSAGE_ERROR})
        if not request.tenant_id.strip():
            return JSONResponse(status_code=400, content={"error": MISSING_TENANT_ERROR})

        try:
            response = await get_agent().analyze(request)
        except Exception as e:
            logger.exception("AI analysis failed: %s", e)
            return JSONResponse(status_code=500, content={"message": "", "error": INTERNAL_ERROR})

        if response.error:
            return JSONResponse(status_code=500, content=response.model_dump())
        return {"message": response.message}

    return app


app = create_app()
