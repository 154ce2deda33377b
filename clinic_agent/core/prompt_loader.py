"""
prompt_loader.py
================

Load the agent's system prompt from ``prompts.md`` and fill in the table list.

The prompt lives in a Markdown file so it can be edited without touching
Python.  It contains one placeholder, ``{table_list}``, replaced with one
``- name: description`` line per registered table.
"""

import logging
from pathlib import Path
from typing import Optional

from ..tools.schema_registry import table_summary_lines

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).parent.parent / "prompts.md"
TABLE_LIST_PLACEHOLDER = "{table_list}"
FALLBACK_PROMPT = (
    "당신은 치과 병원 데이터 분석 전문가 AI입니다.\n\n"
    "## 사용 가능한 테이블\n" + TABLE_LIST_PLACEHOLDER
)


def load_prompt(path: Optional[Path] = None) -> str:
    """Read the raw prompt template.

    Falls back to a minimal prompt if the file is missing.
    """
    path = path or _PROMPT_PATH
    try:
        text = path.read_text(encoding="utf-8")
        logger.info("System prompt loaded from %s (%d chars)", path, len(text))
        return text
    except FileNotFoundError:
        logger.warning("prompts.md not found at %s — using fallback prompt.", path)
        return FALLBACK_PROMPT


def build_system_prompt(path: Optional[Path] = None) -> str:
    """Return the system instruction with the registry table list substituted."""
    # str.replace: the Markdown may contain other braces
    return load_prompt(path).replace(TABLE_LIST_PLACEHOLDER, "\n".join(table_summary_lines()))
