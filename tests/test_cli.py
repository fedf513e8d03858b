import argparse
import asyncio
import contextlib
import io
import unittest
from unittest.mock import patch

from mcp import types
from mcp.shared.exceptions import McpError

from sqlbridge import cli
from sqlbridge.config import Config
from sqlbridge.core.orchestrator import CompletionReply, Role
from sqlbridge.errors import ToolNotFound
from sqlbridge.tool_definitions import registry


class FakeRemote:
    """Stands in for RemoteToolClient; calling it returns itself."""

    def __init__(self, catalog=None, result=None, error=None, connect_error=None):
        self.catalog = list(catalog or [])
        self.result = result
        self.error = error
        self.connect_error = connect_error
        self.calls = []

    def __call__(self, url):
        self.url = url
        return self

    async def __aenter__(self):
        if self.connect_error is not None:
            raise self.connect_error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def list_tools(self, refresh=False):
        return self.catalog

    async def descriptor(self, name):
        for descriptor in self.catalog:
            if descriptor.name == name:
                return descriptor
        raise ToolNotFound(name)

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        return self.result


def run_capturing(coro):
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        code = asyncio.run(coro)
    return code, out.getvalue()


class TestParsing(unittest.TestCase):

    def test_parse_pairs(self):
        self.assertEqual(cli.parse_pairs(["query=SELECT a=1", "x="]), {"query": "SELECT a=1", "x": ""})

    def test_parse_pairs_rejects_bare_words(self):
        for pair in ("query", "=value"):
            with self.subTest(pair=pair):
                with self.assertRaises(argparse.ArgumentTypeError):
                    cli.parse_pairs([pair])

    def test_subcommands(self):
        parser = cli.build_parser()
        args = parser.parse_args(["call", "--url", "http://h/sse", "describe_table", "table_name=T"])
        self.assertEqual((args.command, args.url, args.tool, args.arguments), ("call", "http://h/sse", "describe_table", ["table_name=T"]))
        self.assertEqual(parser.parse_args(["serve", "--port", "4000"]).port, 4000)


class TestCommands(unittest.TestCase):

    def setUp(self):
        self.config = Config()

    def test_list_tools(self):
        remote = FakeRemote(catalog=registry.list())
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            code, out = run_capturing(cli.list_tools(self.config, "http://h/sse"))
        self.assertEqual(code, 0)
        self.assertIn("describe_table", out)
        self.assertIn("[required: table_name]", out)

    def test_list_tools_empty(self):
        with patch("sqlbridge.client.RemoteToolClient", new=FakeRemote()):
            code, out = run_capturing(cli.list_tools(self.config, "http://h/sse"))
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "Connected (No tools found)")

    def test_call_tool_prints_rendered_result(self):
        result = types.CallToolResult(content=[types.TextContent(type="text", text='[{"N": 1}]')])
        remote = FakeRemote(catalog=registry.list(), result=result)
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            code, out = run_capturing(
                cli.call_tool(self.config, "http://h/sse", "execute_query", {"query": "SELECT 1 AS N"})
            )
        self.assertEqual(code, 0)
        self.assertEqual(remote.calls, [("execute_query", {"query": "SELECT 1 AS N"})])
        self.assertIn('"N": 1', out)

    def test_call_tool_validates_before_sending(self):
        remote = FakeRemote(catalog=registry.list())
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            code, out = run_capturing(cli.call_tool(self.config, "http://h/sse", "execute_query", {}))
        self.assertEqual(code, 1)
        self.assertEqual(out.strip(), "Error: Missing required argument 'query'")
        self.assertEqual(remote.calls, [])

    def test_call_unknown_tool(self):
        with patch("sqlbridge.client.RemoteToolClient", new=FakeRemote(catalog=registry.list())):
            code, out = run_capturing(cli.call_tool(self.config, "http://h/sse", "nope", {}))
        self.assertEqual(code, 1)
        self.assertEqual(out.strip(), "Error: Tool not found: nope")

    def test_call_tool_protocol_error(self):
        error = McpError(types.ErrorData(code=types.INVALID_PARAMS, message="Only SELECT queries are allowed via execute_query"))
        remote = FakeRemote(catalog=registry.list(), error=error)
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            code, out = run_capturing(
                cli.call_tool(self.config, "http://h/sse", "execute_query", {"query": "DROP TABLE t"})
            )
        self.assertEqual(code, 1)
        self.assertIn("Only SELECT queries are allowed", out)

    def test_error_result_exit_code(self):
        result = types.CallToolResult(
            content=[types.TextContent(type="text", text="Error executing query: boom")], isError=True
        )
        remote = FakeRemote(catalog=registry.list(), result=result)
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            code, out = run_capturing(
                cli.call_tool(self.config, "http://h/sse", "execute_query", {"query": "SELECT 1"})
            )
        self.assertEqual(code, 1)
        self.assertIn("Error executing query: boom", out)

    def test_main_reports_connection_failure(self):
        remote = FakeRemote(connect_error=ConnectionRefusedError("refused"))
        with patch("sqlbridge.client.RemoteToolClient", new=remote):
            with self.assertLogs("sqlbridge.cli", level="ERROR") as logs:
                code = cli.main(["tools", "--url", "http://127.0.0.1:9/sse"])
        self.assertEqual(code, 1)
        self.assertIn("http://127.0.0.1:9/sse", logs.output[0])


class FakeLLM:
    """Completion client that replays queued replies or exceptions."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def __call__(self, config):
        return self

    async def complete(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class TestChat(unittest.TestCase):

    def run_chat(self, llm, lines):
        remote = FakeRemote(catalog=registry.list())
        with patch("sqlbridge.client.RemoteToolClient", new=remote), \
                patch("sqlbridge.core.llm.GeminiCompletionClient", new=llm), \
                patch("builtins.input", side_effect=lines):
            return run_capturing(cli.chat(Config(), "http://h/sse"))

    @staticmethod
    def user_texts(request):
        return [m.content for m in request.messages if m.role is Role.USER]

    def test_quit_stops_reading(self):
        llm = FakeLLM(CompletionReply("Hello!"))
        code, out = self.run_chat(llm, ["hi", "/quit", "never read"])
        self.assertEqual(code, 0)
        self.assertIn("Hello!", out)
        self.assertEqual(len(llm.requests), 1)

    def test_end_of_input_exits(self):
        code, _ = self.run_chat(FakeLLM(), [EOFError()])
        self.assertEqual(code, 0)

    def test_reset_clears_the_conversation(self):
        llm = FakeLLM(CompletionReply("First answer."), CompletionReply("Second answer."))
        code, out = self.run_chat(llm, ["first", "/reset", "second", "/quit"])
        self.assertEqual(code, 0)
        self.assertIn("Conversation cleared.", out)
        self.assertEqual(self.user_texts(llm.requests[1]), ["second"])
        self.assertIs(llm.requests[1].messages[0].role, Role.SYSTEM)

    def test_failed_turn_keeps_the_session_going(self):
        llm = FakeLLM(RuntimeError("429 quota exceeded"), CompletionReply("Recovered."))
        code, out = self.run_chat(llm, ["first", "second", EOFError()])
        self.assertEqual(code, 0)
        self.assertIn("Error: 429 quota exceeded", out)
        self.assertIn("Recovered.", out)
        self.assertEqual(self.user_texts(llm.requests[1]), ["second"])

    def test_main_does_not_report_turn_failures_as_connection_errors(self):
        llm = FakeLLM(RuntimeError("model unavailable"))
        remote = FakeRemote(catalog=registry.list())
        out = io.StringIO()
        with patch("sqlbridge.client.RemoteToolClient", new=remote), \
                patch("sqlbridge.core.llm.GeminiCompletionClient", new=llm), \
                patch("builtins.input", side_effect=["hello", "/quit"]), \
                contextlib.redirect_stdout(out):
            code = cli.main(["chat", "--url", "http://h/sse"])
        self.assertEqual(code, 0)
        self.assertIn("Error: model unavailable", out.getvalue())


if __name__ == "__main__":
    unittest.main()
