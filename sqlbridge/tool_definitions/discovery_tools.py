"""
sqlbridge/tool_definitions/discovery_tools.py
=============================================

Table discovery tools.

These two tools form the orientation step a client takes before writing SQL::

    list_tables
        └── describe_table(table_name)

``describe_table`` interpolates its argument into the statement, so the name
is checked against ``^[a-zA-Z0-9_]+$`` first.  A bad name comes back as an
error result and no query is issued.
"""

import logging
import re

from mcp import types

from .registry import registry
from ..core.validator import ToolArguments
from ..errors import BackingResourceError, InvalidIdentifier
from ..tools.formatters import database_error_result, error_result, text_result, to_json_text
from ..tools.toolkit import Toolkit

logger = logging.getLogger(__name__)

IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_]+$")


def check_identifier(value: str) -> str:
    """Return ``value`` if it is a bare identifier, else raise ``InvalidIdentifier``."""
    if not IDENTIFIER_RE.fullmatch(value):
        raise InvalidIdentifier(value)
    return value


@registry.tool(
    name="list_tables",
    description="List all tables in the database",
    input_schema={"type": "object", "properties": {}},
)
async def list_tables(toolkit: Toolkit, arguments: ToolArguments) -> types.CallToolResult:
    try:
        result = await toolkit.database.query("SHOW TABLES")
    except BackingResourceError as e:
        return database_error_result(toolkit.error_handler, "Error listing tables", e)
    return text_result(to_json_text(result.rows))


@registry.tool(
    name="describe_table",
    description="Get schema information for a table",
    input_schema={
        "type": "object",
        "properties": {
            "table_name": {"type": "string"},
        },
        "required": ["table_name"],
    },
)
async def describe_table(toolkit: Toolkit, arguments: ToolArguments) -> types.CallToolResult:
    table_name = arguments.get("table_name")

    if not isinstance(table_name, str) or not table_name:
        return error_result("Missing or invalid required argument: table_name")

    try:
        check_identifier(table_name)
    except InvalidIdentifier as e:
        logger.warning("Rejected table name: %r", table_name)
        return error_result(str(e))

    try:
        result = await toolkit.database.query(f"DESCRIBE TABLE {table_name}")
    except BackingResourceError as e:
        return database_error_result(toolkit.error_handler, "Error describing table", e)
    return text_result(to_json_text(result.rows))
