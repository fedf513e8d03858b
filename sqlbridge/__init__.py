"""
sqlbridge
=========

An MCP tool server over SSE for a relational database, plus the client-side
tool-calling loop that lets an LLM drive it.

Entry points::

    from sqlbridge.server import create_app     # FastAPI app
    from sqlbridge.client import RemoteToolClient
    from sqlbridge.core import ToolCallingOrchestrator

or the ``sqlbridge`` command (see ``cli.py``).
"""

__version__ = "0.1.0"
