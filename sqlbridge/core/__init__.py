"""
sqlbridge/core
==============

The tool-invocation protocol core:

- ``registry.py``: Tool descriptors and the name → handler catalog.
- ``validator.py``: Argument checks and array coercion against a schema.
- ``executor.py``: Dispatch with per-tool policy and error conversion.
- ``protocol.py``: JSON-RPC dispatcher for one session.
- ``sessions.py``: Session registry and SSE transport multiplexer.
- ``orchestrator.py``: Client-side model ↔ tools loop.
- ``llm.py``: Gemini completion backend for the orchestrator.
- ``prompt_loader.py``: System prompt for the chat agent.
"""

from .registry import ToolDescriptor, ToolRegistry  # noqa: F401
from .validator import ToolArguments, validate  # noqa: F401
from .executor import ToolExecutor  # noqa: F401
from .sessions import SessionMultiplexer, SessionRegistry  # noqa: F401
from .orchestrator import Conversation, ToolCallingOrchestrator  # noqa: F401
