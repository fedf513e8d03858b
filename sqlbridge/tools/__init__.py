"""
sqlbridge/tools
===============

Infrastructure clients and shared utilities.  Nothing here is visible to the
LLM directly; these are the building blocks the tool handlers in
``tool_definitions/`` use.

Modules
-------
- ``database.py``: Snowflake connection, async query execution, row
  normalization.
- ``error_handler.py``: Pattern-matched, readable database error text.
- ``toolkit.py``: Container passed to every tool handler.
- ``formatters.py``: Tool result builders and display truncation.
"""

from .toolkit import Toolkit  # noqa: F401
from .formatters import render_tool_result  # noqa: F401
