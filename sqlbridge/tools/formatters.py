"""
sqlbridge/tools/formatters.py
=============================

Shared output formatting utilities.

Two sides use this module:

- Tool handlers call ``to_json_text`` / ``text_result`` / ``error_result`` to
  build ``CallToolResult`` payloads.
- Callers (the CLI and the chat orchestrator) call ``render_tool_result`` to
  turn a result into display text.  Size limits are a presentation concern:
  truncation happens here, never inside the executor.
"""

import json
from typing import Any

from mcp import types

MAX_RESULT_CHARS = 50_000
TRUNCATION_NOTICE = "\n\n...(response truncated due to size)..."
RAW_TRUNCATION_NOTICE = "\n\n...(response truncated due to size, check server logs for full output)..."


def to_json_text(data: Any) -> str:
    return json.dumps(data, default=str)


def text_result(text: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


def error_result(text: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=True,
    )


def database_error_result(
    error_handler, prefix: str, error: Exception, query: str | None = None
) -> types.CallToolResult:
    """Error result for a failed statement, with classified suggestions.

    When ``query`` is given it is echoed back so the caller can correct it.
    """
    error_type, message, suggestions = error_handler.handle_database_error(error)
    return error_result(
        error_handler.format_error_response(error, prefix, error_type, message, suggestions, query)
    )


def truncate_text(text: str, limit: int = MAX_RESULT_CHARS, notice: str = TRUNCATION_NOTICE) -> str:
    """Cut ``text`` to ``limit`` characters and append ``notice`` if it was longer."""
    if len(text) > limit:
        return text[:limit] + notice
    return text


def render_tool_result(result: types.CallToolResult, limit: int = MAX_RESULT_CHARS) -> str:
    """Render a tool result as display text.

    A leading text part holding JSON is pretty-printed; other text is shown
    as-is.  Results without a leading text part are dumped whole.  In every
    case the output is capped at ``limit`` characters.
    """
    content = result.content or []
    if content and isinstance(content[0], types.TextContent):
        text = content[0].text
        try:
            text = json.dumps(json.loads(text), indent=2)
        except ValueError:
            pass
        return truncate_text(text, limit)

    dumped = json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2)
    return truncate_text(dumped, limit, RAW_TRUNCATION_NOTICE)
