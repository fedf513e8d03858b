"""
sqlbridge/core/registry.py
==========================

The tool catalog: a name → handler mapping built once at import time.

How registration works
----------------------
Each module in ``sqlbridge/tool_definitions/`` decorates its handlers with
``@registry.tool(...)``.  The decorator records an immutable
``ToolDescriptor`` (name, description, JSON schema) next to the handler, so
dispatching a call is a dictionary lookup::

    @registry.tool(
        name="list_tables",
        description="List all tables in the database",
        input_schema={"type": "object", "properties": {}},
    )
    async def list_tables(toolkit, arguments):
        ...

Handlers are ``async`` callables taking ``(toolkit, arguments)`` and
returning an ``mcp.types.CallToolResult``.

``list()`` returns descriptors in registration order, which is therefore the
order clients see in ``tools/list``.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping

from mcp import types

from ..errors import ToolNotFound

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[types.CallToolResult]]


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class ToolDescriptor:
    """Public description of one tool, as advertised to clients."""

    name: str
    description: str
    input_schema: Mapping[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def __post_init__(self):
        object.__setattr__(self, "input_schema", _freeze(self.input_schema))

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(self.input_schema.get("required", ()))

    @property
    def properties(self) -> Mapping[str, Any]:
        return self.input_schema.get("properties", {})

    def schema_dict(self) -> dict[str, Any]:
        """Return a plain, mutable copy of the input schema."""
        return _thaw(self.input_schema)

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.schema_dict(),
        )

    @classmethod
    def from_tool(cls, tool: types.Tool) -> "ToolDescriptor":
        return cls(
            name=tool.name,
            description=tool.description or "",
            input_schema=tool.inputSchema or {"type": "object", "properties": {}},
        )


class ToolRegistry:
    """Ordered mapping of tool name to ``(descriptor, handler)``."""

    def __init__(self):
        self._descriptors: dict[str, ToolDescriptor] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, descriptor: ToolDescriptor, handler: ToolHandler) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._descriptors[descriptor.name] = descriptor
        self._handlers[descriptor.name] = handler
        logger.debug("Registered tool: %s", descriptor.name)

    def tool(
        self,
        *,
        name: str,
        description: str,
        input_schema: Mapping[str, Any] | None = None,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator form of ``register``; returns the handler unchanged."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            schema = input_schema or {"type": "object", "properties": {}}
            self.register(ToolDescriptor(name, description, schema), handler)
            return handler

        return decorator

    def list(self) -> list[ToolDescriptor]:
        return list(self._descriptors.values())

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def handler(self, name: str) -> ToolHandler:
        try:
            return self._handlers[name]
        except KeyError:
            raise ToolNotFound(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)
