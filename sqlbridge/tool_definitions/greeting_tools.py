"""
sqlbridge/tool_definitions/greeting_tools.py
============================================

``say_hi``: a connectivity check that never touches the database.  It always
answers with text, describing whether the message matched.
"""

import logging

from mcp import types

from .registry import registry
from ..core.validator import ToolArguments
from ..tools.formatters import text_result
from ..tools.toolkit import Toolkit

logger = logging.getLogger(__name__)


@registry.tool(
    name="say_hi",
    description="Responds to hi",
    input_schema={
        "type": "object",
        "properties": {
            "message": {
                "type": "string",
                "description": "The message from the user",
            },
        },
        "required": ["message"],
    },
)
async def say_hi(toolkit: Toolkit, arguments: ToolArguments) -> types.CallToolResult:
    message = arguments.get("message")
    logger.info("Received message: %s", message)
    if message == "hi":
        return text_result("hi im there")
    return text_result(f"You said {message}, but I only respond to 'hi'")
