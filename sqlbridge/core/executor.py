"""
sqlbridge/core/executor.py
==========================

Maps a tool invocation to its handler and runs it against the database.

Dispatch
--------
::

    execute(name, raw_args)
        ↓  registry.get(name)          unknown name → ToolNotFound (raised)
        ↓  validate(descriptor, args)  bad args     → isError result
        ↓  handler(toolkit, args)      wrong SQL category → ForbiddenOperation (raised)
        ↓                              database failure   → isError result
    CallToolResult

Only ``ToolNotFound`` and ``ForbiddenOperation`` leave this layer as
exceptions; the protocol dispatcher turns them into JSON-RPC errors.
"""

import logging
from typing import Any, Mapping

from mcp import types

from ..errors import BackingResourceError, ValidationError
from ..tools.formatters import database_error_result, error_result
from ..tools.toolkit import Toolkit
from .registry import ToolRegistry
from .validator import validate

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs registered tool handlers with validated arguments.

    Parameters
    ----------
    registry:
        The tool catalog to dispatch against.
    toolkit:
        Shared clients handed to every handler.
    """

    def __init__(self, registry: ToolRegistry, toolkit: Toolkit):
        self.registry = registry
        self.toolkit = toolkit

    async def execute(self, tool_name: str, arguments: Mapping[str, Any] | None = None) -> types.CallToolResult:
        descriptor = self.registry.get(tool_name)
        handler = self.registry.handler(tool_name)

        try:
            validated = validate(descriptor, arguments)
        except ValidationError as e:
            logger.info("Rejected call to %s: %s", tool_name, e)
            return error_result(str(e))

        logger.info("Executing tool: %s | args: %s", tool_name, list(validated.keys()))
        try:
            return await handler(self.toolkit, validated)
        except ValidationError as e:
            return error_result(str(e))
        except BackingResourceError as e:
            logger.warning("Tool %s failed against the database: %s", tool_name, e)
            return database_error_result(self.toolkit.error_handler, f"Error running {tool_name}", e)
