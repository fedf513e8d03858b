"""
sqlbridge/tool_definitions
==========================

Every tool a client can invoke.

How tools work
--------------
1. ``registry.py`` creates the single ``ToolRegistry`` (``registry``).
2. Each domain module decorates async handlers with ``@registry.tool(...)``,
   giving the tool's name, description and JSON schema.
3. ``core/executor.py`` validates incoming arguments against that schema and
   calls the handler with the shared ``Toolkit``.

Tool categories
---------------
- ``greeting_tools.py``: ``say_hi`` connectivity check
- ``discovery_tools.py``: ``list_tables``, ``describe_table``
- ``query_tools.py``: ``execute_query`` (read-only), ``execute_update``
"""

from .registry import registry  # noqa: F401
