"""
sqlbridge/tool_definitions/query_tools.py
=========================================

Free-form SQL tools, split by statement category.

- ``execute_query``: read-only; the statement must start with ``SELECT``.
- ``execute_update``: the statement must start with one of ``INSERT``,
  ``UPDATE``, ``DELETE``, ``CREATE`` or ``DROP``.

The category check looks at the trimmed, upper-cased statement prefix.  A
statement in the wrong category is a caller bug, so it raises
``ForbiddenOperation`` and the whole invocation is rejected at the protocol
level.  Failures while the statement runs are returned as error results.
"""

import logging

from mcp import types

from .registry import registry
from ..core.validator import ToolArguments
from ..errors import BackingResourceError, ForbiddenOperation
from ..tools.formatters import database_error_result, text_result, to_json_text
from ..tools.toolkit import Toolkit

logger = logging.getLogger(__name__)

READ_PREFIXES = ("SELECT",)
WRITE_PREFIXES = ("INSERT", "UPDATE", "DELETE", "CREATE", "DROP")

QUERY_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {"type": "string"},
    },
    "required": ["query"],
}


def ensure_category(query, prefixes: tuple[str, ...], message: str) -> str:
    """Return ``query`` if its statement prefix is allowed, else raise."""
    if not isinstance(query, str) or not query.strip().upper().startswith(prefixes):
        raise ForbiddenOperation(message)
    return query


@registry.tool(
    name="execute_query",
    description="Execute a SELECT query",
    input_schema=QUERY_SCHEMA,
)
async def execute_query(toolkit: Toolkit, arguments: ToolArguments) -> types.CallToolResult:
    query = ensure_category(
        arguments.get("query"),
        READ_PREFIXES,
        "Only SELECT queries are allowed via execute_query",
    )
    try:
        result = await toolkit.database.query(query)
    except BackingResourceError as e:
        return database_error_result(toolkit.error_handler, "Error executing query", e, query=query)
    return text_result(to_json_text(result.rows))


@registry.tool(
    name="execute_update",
    description="Execute an INSERT/UPDATE/DELETE/CREATE/DROP query",
    input_schema=QUERY_SCHEMA,
)
async def execute_update(toolkit: Toolkit, arguments: ToolArguments) -> types.CallToolResult:
    query = ensure_category(
        arguments.get("query"),
        WRITE_PREFIXES,
        "Only INSERT, UPDATE, DELETE, CREATE, or DROP queries are allowed via execute_update",
    )
    try:
        result = await toolkit.database.query(query)
    except BackingResourceError as e:
        return database_error_result(toolkit.error_handler, "Error executing update", e, query=query)
    logger.info("Update statement completed.")
    return text_result(to_json_text(result.rows))
