"""
clinic_agent
============

Clinic analytics agent: answers natural-language questions about one dental
clinic's operational data (daily reports, consultations, attendance, recalls,
inventory…) by letting Gemini call three read-only data tools.

ADK discovers the agent through the module-level ``root_agent``::

    from clinic_agent import root_agent

The HTTP surface is ``clinic_agent.api:app``.
"""

from .core.agent import Agent, create_agent, root_agent  # noqa: F401

__all__ = ["root_agent", "create_agent", "Agent"]
