"""
prompt_loader.py
================

Load the chat agent's system prompt from ``sqlbridge/prompts.md``.

Keeping the prompt in Markdown lets it change without touching Python and
keeps prompt edits readable in diffs.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_PROMPT_PATH = Path(__file__).parent.parent / "prompts.md"

FALLBACK_PROMPT = "You are a helpful database assistant. Use the available tools to answer questions."


def load_prompt(path: Path | None = None) -> str:
    """Read and return the system prompt, or a minimal fallback if the file is missing."""
    path = path or _PROMPT_PATH
    try:
        text = path.read_text(encoding="utf-8")
        logger.info("System prompt loaded from %s (%d chars)", path, len(text))
        return text
    except FileNotFoundError:
        logger.warning("prompts.md not found at %s; using fallback prompt.", path)
        return FALLBACK_PROMPT
