"""
sqlbridge/core/sessions.py
==========================

Session transport multiplexer: many long-lived SSE connections, one short
POST channel.

How a session flows
-------------------
::

    GET /sse ──► connect()        CONNECTING → OPEN, id minted, worker started
                   │
                   ▼
               stream(session)    "endpoint" event, then one "message" event
                   ▲              per outbound reply
                   │
    POST /message?sessionId=… ──► route(id, message)
                                  unknown id → SessionNotFound (no side effect)
                                  else → session inbound queue → worker
                                         → handler → outbound queue

    disconnect / close(id) ──►   OPEN → CLOSED, removed from registry,
                                  worker cancelled (idempotent)

Every session has its own inbound queue and a single worker task, so requests
on one session are answered in arrival order while sessions never wait on
each other.  The ``SessionRegistry`` is the only shared mutable state; it is
changed only in ``connect()`` and ``close()``.
"""

import asyncio
import enum
import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable, Iterator

from mcp import types

from ..errors import SessionNotFound

logger = logging.getLogger(__name__)

MessageHandler = Callable[[types.JSONRPCMessage], Awaitable[types.JSONRPCMessage | None]]

# Wakes a stream consumer when its session closes.
_CLOSED = object()


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Session:
    """One long-lived connection and the queues that feed it."""

    def __init__(self, session_id: str, handler: MessageHandler):
        self.id = session_id
        self.state = SessionState.CONNECTING
        self._handler = handler
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    def start(self) -> None:
        self._worker = asyncio.create_task(self._run(), name=f"session-{self.id}")
        self.state = SessionState.OPEN

    def deliver(self, message: types.JSONRPCMessage) -> None:
        self._inbound.put_nowait(message)

    def send(self, message: types.JSONRPCMessage) -> None:
        self._outbound.put_nowait(message)

    async def next_outbound(self, timeout: float | None = None):
        """Return the next outbound message, ``None`` on timeout, ``_CLOSED`` at the end."""
        try:
            return await asyncio.wait_for(self._outbound.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def _run(self) -> None:
        while True:
            message = await self._inbound.get()
            try:
                reply = await self._handler(message)
            except Exception:
                logger.exception("Session %s failed to handle a message", self.id)
                continue
            if reply is not None:
                self.send(reply)

    def close(self) -> bool:
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        if self._worker is not None:
            self._worker.cancel()
        self._outbound.put_nowait(_CLOSED)
        return True


class SessionRegistry:
    """Live sessions keyed by id."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}

    def new_id(self) -> str:
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        return session_id

    def add(self, session: Session) -> None:
        if session.id in self._sessions:
            raise ValueError(f"Session id already live: {session.id}")
        self._sessions[session.id] = session

    def get(self, session_id: str | None) -> Session:
        session = self._sessions.get(session_id) if session_id else None
        if session is None or not session.is_open:
            raise SessionNotFound(session_id)
        return session

    def remove(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))


def sse_event(event: str, data: str) -> str:
    lines = "".join(f"data: {line}\n" for line in data.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class SessionMultiplexer:
    """Opens, routes to, streams and closes sessions.

    Parameters
    ----------
    handler_factory:
        Called once per session to build its message handler (typically
        ``ProtocolHandler(...).handle``).
    registry:
        The session map this multiplexer owns.  A fresh one is created when
        omitted.
    message_path:
        Path of the POST endpoint, advertised in the ``endpoint`` event.
    ping_interval:
        Seconds of outbound silence before a ``: ping`` comment is sent.
    """

    def __init__(
        self,
        handler_factory: Callable[[], MessageHandler],
        registry: SessionRegistry | None = None,
        message_path: str = "/message",
        ping_interval: float = 15.0,
    ):
        self._handler_factory = handler_factory
        self.registry = registry if registry is not None else SessionRegistry()
        self.message_path = message_path
        self.ping_interval = ping_interval

    async def connect(self) -> Session:
        session = Session(self.registry.new_id(), self._handler_factory())
        self.registry.add(session)
        session.start()
        logger.info("New SSE connection: session %s (%d live)", session.id, len(self.registry))
        return session

    async def route(self, session_id: str | None, message: types.JSONRPCMessage) -> None:
        session = self.registry.get(session_id)
        session.deliver(message)

    async def close(self, session_id: str) -> bool:
        session = self.registry.remove(session_id)
        if session is None or not session.close():
            return False
        logger.info("SSE connection closed: session %s (%d live)", session_id, len(self.registry))
        return True

    async def close_all(self) -> None:
        for session in self.registry:
            await self.close(session.id)

    def endpoint_for(self, session: Session) -> str:
        return f"{self.message_path}?sessionId={session.id}"

    async def stream(self, session: Session) -> AsyncIterator[str]:
        """Yield SSE frames for ``session`` until it closes; closes it on exit."""
        try:
            yield sse_event("endpoint", self.endpoint_for(session))
            while True:
                message = await session.next_outbound(self.ping_interval)
                if message is _CLOSED:
                    break
                if message is None:
                    yield ": ping\n\n"
                    continue
                yield sse_event("message", message.model_dump_json(by_alias=True, exclude_none=True))
        finally:
            await self.close(session.id)
