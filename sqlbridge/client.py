"""
sqlbridge/client.py
===================

Client stub for a remote sqlbridge server.

``RemoteToolClient`` wraps a ``fastmcp.Client`` over an SSE transport and
exposes the two operations the CLI and the orchestrator need:
``list_tools()`` and ``call_tool()``.  It returns raw ``CallToolResult``
objects (``isError`` included) so callers decide how to present failures;
protocol-level rejections surface as ``mcp.shared.exceptions.McpError``.

Usage::

    async with RemoteToolClient("http://localhost:3001/sse") as tools:
        catalog = await tools.list_tools()
        result = await tools.call_tool("list_tables", {})
"""

import logging
from typing import Any, Mapping

from fastmcp import Client
from fastmcp.client.transports import SSETransport
from mcp import types

from .core.registry import ToolDescriptor
from .errors import ToolNotFound

logger = logging.getLogger(__name__)


class RemoteToolClient:
    def __init__(self, url: str):
        self.url = url
        self._client = Client(SSETransport(url))
        self._catalog: list[ToolDescriptor] | None = None

    async def __aenter__(self) -> "RemoteToolClient":
        logger.info("Connecting to tool server at %s", self.url)
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.__aexit__(exc_type, exc, tb)
        logger.info("Disconnected from tool server")

    async def list_tools(self, refresh: bool = False) -> list[ToolDescriptor]:
        """Return the remote catalog, fetched once and cached."""
        if self._catalog is None or refresh:
            tools = await self._client.list_tools()
            self._catalog = [ToolDescriptor.from_tool(t) for t in tools]
            logger.info("Tools received: %s", [t.name for t in self._catalog])
        return self._catalog

    async def descriptor(self, name: str) -> ToolDescriptor:
        for descriptor in await self.list_tools():
            if descriptor.name == name:
                return descriptor
        raise ToolNotFound(name)

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> types.CallToolResult:
        logger.info("Calling remote tool: %s", name)
        return await self._client.call_tool_mcp(name, dict(arguments or {}))
