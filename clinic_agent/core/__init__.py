"""
clinic_agent/core
=================

The agent runtime:

- ``agent.py``         — ``Agent`` (ADK ``BaseAgent``): the model/tool loop.
- ``conversation.py``  — immutable conversation state and request/response models.
- ``model_client.py``  — ``ModelClient`` protocol and the Gemini implementation.
- ``mcp_registry.py``  — FastMCP registry → Gemini function declarations.
- ``prompt_loader.py`` — system prompt from ``prompts.md``.
- ``date_parser.py``   — Korean date phrases → ``{startDate, endDate}``.
"""

from .agent import Agent, create_agent, root_agent  # noqa: F401
