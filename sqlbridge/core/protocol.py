"""
sqlbridge/core/protocol.py
==========================

JSON-RPC dispatcher for one session.

Each inbound ``JSONRPCMessage`` is answered with at most one outbound
message.  Requests get a ``JSONRPCResponse`` or ``JSONRPCError``;
notifications and client responses get nothing.

Supported methods
-----------------
- ``initialize``: protocol version negotiation and server capabilities.
- ``ping``: empty result.
- ``tools/list``: the registry catalog, in registration order.
- ``tools/call``: ``ToolExecutor.execute``.

Error mapping
-------------
``ToolNotFound`` and ``ForbiddenOperation`` → ``INVALID_PARAMS`` (-32602);
unknown method → ``METHOD_NOT_FOUND`` (-32601); anything unexpected →
``INTERNAL_ERROR`` (-32603).  None of these end the session.
"""

import logging
from typing import Any, Awaitable, Callable

from mcp import types
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from pydantic import ValidationError as PydanticValidationError

from ..errors import ForbiddenOperation, ToolNotFound
from .executor import ToolExecutor
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    def __init__(self, code: int, message: str):
        self.code = code
        super().__init__(message)


class ProtocolHandler:
    """Answers JSON-RPC messages using the registry and executor."""

    def __init__(
        self,
        registry: ToolRegistry,
        executor: ToolExecutor,
        server_name: str = "sqlbridge",
        server_version: str = "0.1.0",
    ):
        self.registry = registry
        self.executor = executor
        self.server_info = types.Implementation(name=server_name, version=server_version)
        self._methods: dict[str, Callable[[dict[str, Any]], Awaitable[types.Result]]] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    async def handle(self, message: types.JSONRPCMessage) -> types.JSONRPCMessage | None:
        request = message.root
        if isinstance(request, types.JSONRPCNotification):
            logger.debug("Notification received: %s", request.method)
            return None
        if not isinstance(request, types.JSONRPCRequest):
            logger.debug("Ignoring client response for id %s", request.id)
            return None

        try:
            method = self._methods.get(request.method)
            if method is None:
                raise ProtocolError(types.METHOD_NOT_FOUND, f"Method not found: {request.method}")
            result = await method(request.params or {})
        except ProtocolError as e:
            return self._error(request.id, e.code, str(e))
        except (ToolNotFound, ForbiddenOperation) as e:
            logger.info("Rejected %s: %s", request.method, e)
            return self._error(request.id, types.INVALID_PARAMS, str(e))
        except PydanticValidationError as e:
            return self._error(request.id, types.INVALID_PARAMS, f"Invalid params: {e}")
        except Exception as e:
            logger.exception("Unexpected failure handling %s", request.method)
            return self._error(request.id, types.INTERNAL_ERROR, str(e))

        return types.JSONRPCMessage(
            types.JSONRPCResponse(
                jsonrpc="2.0",
                id=request.id,
                result=result.model_dump(by_alias=True, mode="json", exclude_none=True),
            )
        )

    @staticmethod
    def _error(request_id, code: int, message: str) -> types.JSONRPCMessage:
        return types.JSONRPCMessage(
            types.JSONRPCError(
                jsonrpc="2.0",
                id=request_id,
                error=types.ErrorData(code=code, message=message),
            )
        )

    async def _initialize(self, params: dict[str, Any]) -> types.Result:
        requested = types.InitializeRequestParams.model_validate(params).protocolVersion
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION
        logger.info("Initializing session with protocol version %s", version)
        return types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability(listChanged=False)),
            serverInfo=self.server_info,
        )

    async def _ping(self, params: dict[str, Any]) -> types.Result:
        return types.EmptyResult()

    async def _list_tools(self, params: dict[str, Any]) -> types.Result:
        return types.ListToolsResult(tools=[d.to_tool() for d in self.registry.list()])

    async def _call_tool(self, params: dict[str, Any]) -> types.Result:
        call = types.CallToolRequestParams.model_validate(params)
        return await self.executor.execute(call.name, call.arguments or {})
