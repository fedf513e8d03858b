import unittest
from unittest.mock import MagicMock

from google.genai import types

from sqlbridge.config import Config
from sqlbridge.core.llm import (
    GeminiCompletionClient,
    build_gemini_tools,
    parse_gemini_response,
    sanitize_schema,
    to_gemini_contents,
)
from sqlbridge.core.orchestrator import (
    CompletionPhase,
    CompletionRequest,
    Message,
    Role,
    ToolCall,
)
from sqlbridge.core.registry import ToolDescriptor


QUERY_TOOL = ToolDescriptor(
    "execute_query",
    "Execute a SELECT query",
    {
        "type": "object",
        "title": "ExecuteQueryArgs",
        "additionalProperties": False,
        "properties": {"query": {"type": "string", "title": "Query"}},
        "required": ["query"],
    },
)
LIST_TOOL = ToolDescriptor("list_tables", "List all tables in the database")


def gemini_response(*parts):
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


class TestSchemaTranslation(unittest.TestCase):

    def test_sanitize_schema(self):
        clean = sanitize_schema(QUERY_TOOL.schema_dict())
        self.assertNotIn("title", clean)
        self.assertNotIn("additionalProperties", clean)
        self.assertEqual(clean["properties"]["query"], {"type": "string", "title": "Query"})

    def test_build_gemini_tools(self):
        tools = build_gemini_tools([QUERY_TOOL, LIST_TOOL])
        self.assertEqual(len(tools), 1)
        declarations = tools[0].function_declarations
        self.assertEqual([d.name for d in declarations], ["execute_query", "list_tables"])
        self.assertIsNotNone(declarations[0].parameters)
        self.assertIsNone(declarations[1].parameters)

    def test_empty_catalog(self):
        self.assertEqual(build_gemini_tools([]), [])


class TestContentTranslation(unittest.TestCase):

    def test_roles_and_system_instruction(self):
        system, contents = to_gemini_contents(
            [
                Message(Role.SYSTEM, "Be helpful."),
                Message(Role.USER, "hi"),
                Message(Role.ASSISTANT, "Hello!"),
            ]
        )
        self.assertEqual(system, "Be helpful.")
        self.assertEqual([c.role for c in contents], ["user", "model"])
        self.assertEqual(contents[1].parts[0].text, "Hello!")

    def test_tool_messages_are_grouped(self):
        calls = (ToolCall("a", "list_tables"), ToolCall("b", "execute_query", '{"query": "SELECT 1"}'))
        _, contents = to_gemini_contents(
            [
                Message(Role.USER, "go"),
                Message(Role.ASSISTANT, tool_calls=calls),
                Message(Role.TOOL, '[{"NAME": "T"}]', tool_call_id="a", tool_name="list_tables"),
                Message(Role.TOOL, "Error: boom", tool_call_id="b", tool_name="execute_query", is_error=True),
            ]
        )
        self.assertEqual([c.role for c in contents], ["user", "model", "user"])

        model_parts = contents[1].parts
        self.assertEqual([p.function_call.name for p in model_parts], ["list_tables", "execute_query"])
        self.assertEqual(model_parts[1].function_call.args, {"query": "SELECT 1"})

        responses = [p.function_response for p in contents[2].parts]
        self.assertEqual([r.id for r in responses], ["a", "b"])
        self.assertEqual(responses[0].response, {"result": [{"NAME": "T"}]})
        self.assertEqual(responses[1].response, {"error": "Error: boom"})

    def test_no_system_prompt(self):
        system, _ = to_gemini_contents([Message(Role.USER, "hi")])
        self.assertIsNone(system)


class TestParseResponse(unittest.TestCase):

    def test_text_reply(self):
        reply = parse_gemini_response(gemini_response(types.Part(text="All done.")))
        self.assertEqual(reply.content, "All done.")
        self.assertEqual(reply.tool_calls, ())

    def test_function_calls_get_ids(self):
        reply = parse_gemini_response(
            gemini_response(
                types.Part(function_call=types.FunctionCall(name="list_tables", args={})),
                types.Part(function_call=types.FunctionCall(id="given", name="execute_query", args={"query": "SELECT 1"})),
            )
        )
        first, second = reply.tool_calls
        self.assertTrue(first.id.startswith("call_"))
        self.assertEqual(first.parse_arguments(), {})
        self.assertEqual(second.id, "given")
        self.assertEqual(second.parse_arguments(), {"query": "SELECT 1"})

    def test_thoughts_are_skipped(self):
        reply = parse_gemini_response(
            gemini_response(types.Part(text="thinking...", thought=True), types.Part(text="Answer"))
        )
        self.assertEqual(reply.content, "Answer")

    def test_empty_response(self):
        reply = parse_gemini_response(types.GenerateContentResponse(candidates=[]))
        self.assertEqual(reply.content, "")
        self.assertEqual(reply.tool_calls, ())


class TestGeminiCompletionClient(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sdk = MagicMock()
        self.llm = GeminiCompletionClient(Config(model_name="gemini-test"), client=self.sdk)

    def test_terminal_phase_disables_function_calling(self):
        request = CompletionRequest([Message(Role.USER, "hi")], [LIST_TOOL], CompletionPhase.TERMINAL)
        config = self.llm.build_config(request, None)
        self.assertEqual(config.tool_config.function_calling_config.mode, types.FunctionCallingConfigMode.NONE)
        self.assertEqual(config.temperature, 0.0)

    def test_tools_phase_leaves_calling_enabled(self):
        request = CompletionRequest([Message(Role.USER, "hi")], [LIST_TOOL], CompletionPhase.TOOLS)
        config = self.llm.build_config(request, "sys")
        self.assertIsNone(config.tool_config)
        self.assertEqual(config.system_instruction, "sys")

    async def test_complete(self):
        self.sdk.models.generate_content.return_value = gemini_response(types.Part(text="Hello"))
        reply = await self.llm.complete(CompletionRequest([Message(Role.USER, "hi")], [LIST_TOOL]))
        self.assertEqual(reply.content, "Hello")
        kwargs = self.sdk.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "gemini-test")
        self.assertEqual(kwargs["contents"][0].parts[0].text, "hi")

    async def test_complete_drops_calls_in_terminal_phase(self):
        self.sdk.models.generate_content.return_value = gemini_response(
            types.Part(text="Here you go."),
            types.Part(function_call=types.FunctionCall(name="list_tables", args={})),
        )
        request = CompletionRequest([Message(Role.USER, "hi")], [LIST_TOOL], CompletionPhase.TERMINAL)
        with self.assertLogs("sqlbridge.core.llm", level="WARNING"):
            reply = await self.llm.complete(request)
        self.assertEqual(reply.content, "Here you go.")
        self.assertEqual(reply.tool_calls, ())


if __name__ == "__main__":
    unittest.main()
