"""
sqlbridge/tool_definitions/registry.py
======================================

Single ``ToolRegistry`` instance shared across all tool definition modules.

Every module below imports ``registry`` from here and decorates its handlers
with ``@registry.tool(...)``.  The imports at the bottom make sure all
decorators have run by the time anything reads ``registry``; their order is
the order of the advertised catalog.
"""

from ..core.registry import ToolRegistry

# The central catalog.  All @registry.tool() decorators register on this object.
registry = ToolRegistry()

from . import greeting_tools   # noqa: E402, F401
from . import discovery_tools  # noqa: E402, F401
from . import query_tools      # noqa: E402, F401
