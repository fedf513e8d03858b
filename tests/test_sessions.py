import asyncio
import unittest

from mcp import types

from sqlbridge.core.sessions import SessionMultiplexer, SessionState, sse_event
from sqlbridge.errors import SessionNotFound


def request(request_id, method="ping"):
    return types.JSONRPCMessage(types.JSONRPCRequest(jsonrpc="2.0", id=request_id, method=method))


async def echo_handler(message):
    return types.JSONRPCMessage(
        types.JSONRPCResponse(jsonrpc="2.0", id=message.root.id, result={"method": message.root.method})
    )


class TestSseEvent(unittest.TestCase):

    def test_single_line(self):
        self.assertEqual(sse_event("endpoint", "/message?sessionId=abc"), "event: endpoint\ndata: /message?sessionId=abc\n\n")

    def test_multi_line_data(self):
        self.assertEqual(sse_event("message", "a\nb"), "event: message\ndata: a\ndata: b\n\n")


class TestSessionMultiplexer(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.multiplexer = SessionMultiplexer(lambda: echo_handler, ping_interval=0.05)

    async def asyncTearDown(self):
        await self.multiplexer.close_all()

    async def test_connect_assigns_unique_open_sessions(self):
        first = await self.multiplexer.connect()
        second = await self.multiplexer.connect()
        self.assertNotEqual(first.id, second.id)
        self.assertIs(first.state, SessionState.OPEN)
        self.assertIn(first.id, self.multiplexer.registry)
        self.assertEqual(len(self.multiplexer.registry), 2)

    async def test_stream_starts_with_endpoint_event(self):
        session = await self.multiplexer.connect()
        stream = self.multiplexer.stream(session)
        first = await stream.__anext__()
        self.assertEqual(first, f"event: endpoint\ndata: /message?sessionId={session.id}\n\n")
        await stream.aclose()

    async def test_replies_arrive_in_request_order(self):
        session = await self.multiplexer.connect()
        for request_id in range(1, 6):
            await self.multiplexer.route(session.id, request(request_id))

        ids = []
        for _ in range(5):
            reply = await session.next_outbound(timeout=1)
            ids.append(reply.root.id)
        self.assertEqual(ids, [1, 2, 3, 4, 5])

    async def test_stream_emits_message_events(self):
        session = await self.multiplexer.connect()
        stream = self.multiplexer.stream(session)
        await stream.__anext__()
        await self.multiplexer.route(session.id, request(7, "tools/list"))

        frame = await asyncio.wait_for(stream.__anext__(), timeout=1)
        self.assertTrue(frame.startswith("event: message\ndata: "))
        self.assertIn('"id":7', frame)
        await stream.aclose()

    async def test_stream_sends_pings_while_idle(self):
        session = await self.multiplexer.connect()
        stream = self.multiplexer.stream(session)
        await stream.__anext__()
        frame = await asyncio.wait_for(stream.__anext__(), timeout=1)
        self.assertEqual(frame, ": ping\n\n")
        await stream.aclose()

    async def test_stream_ends_and_closes_when_session_closes(self):
        session = await self.multiplexer.connect()
        stream = self.multiplexer.stream(session)
        await stream.__anext__()
        await self.multiplexer.close(session.id)
        with self.assertRaises(StopAsyncIteration):
            await asyncio.wait_for(stream.__anext__(), timeout=1)
        self.assertNotIn(session.id, self.multiplexer.registry)

    async def test_unknown_session_is_rejected(self):
        with self.assertRaises(SessionNotFound):
            await self.multiplexer.route("no-such-session", request(1))
        with self.assertRaises(SessionNotFound):
            await self.multiplexer.route(None, request(1))

    async def test_closed_session_is_rejected(self):
        session = await self.multiplexer.connect()
        self.assertTrue(await self.multiplexer.close(session.id))
        self.assertIs(session.state, SessionState.CLOSED)
        with self.assertRaises(SessionNotFound):
            await self.multiplexer.route(session.id, request(1))

    async def test_close_is_idempotent(self):
        session = await self.multiplexer.connect()
        self.assertTrue(await self.multiplexer.close(session.id))
        self.assertFalse(await self.multiplexer.close(session.id))
        self.assertFalse(await self.multiplexer.close("never-existed"))
        self.assertEqual(len(self.multiplexer.registry), 0)

    async def test_sessions_are_independent(self):
        blocker = asyncio.Event()

        async def slow_handler(message):
            await blocker.wait()
            return await echo_handler(message)

        handlers = iter([slow_handler, echo_handler])
        multiplexer = SessionMultiplexer(lambda: next(handlers))
        slow = await multiplexer.connect()
        fast = await multiplexer.connect()

        await multiplexer.route(slow.id, request(1))
        await multiplexer.route(fast.id, request(2))

        reply = await fast.next_outbound(timeout=1)
        self.assertEqual(reply.root.id, 2)
        self.assertIsNone(await slow.next_outbound(timeout=0.05))

        blocker.set()
        reply = await slow.next_outbound(timeout=1)
        self.assertEqual(reply.root.id, 1)
        await multiplexer.close_all()

    async def test_handler_failure_keeps_session_alive(self):
        calls = []

        async def flaky_handler(message):
            calls.append(message.root.id)
            if message.root.id == 1:
                raise RuntimeError("boom")
            return await echo_handler(message)

        multiplexer = SessionMultiplexer(lambda: flaky_handler)
        session = await multiplexer.connect()
        with self.assertLogs("sqlbridge.core.sessions", level="ERROR"):
            await multiplexer.route(session.id, request(1))
            await multiplexer.route(session.id, request(2))
            reply = await session.next_outbound(timeout=1)
        self.assertEqual(reply.root.id, 2)
        self.assertEqual(calls, [1, 2])
        await multiplexer.close_all()


if __name__ == "__main__":
    unittest.main()
