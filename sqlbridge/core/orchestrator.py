"""
sqlbridge/core/orchestrator.py
==============================

Client-side tool-calling loop: one ``submit()`` per user turn.

Architecture Overview
---------------------
::

    User message
        ↓
    LLM complete(messages, tools, phase=TOOLS)
        ↓ LLM decides: answer directly OR propose tool calls
    ┌───────────────────┐      ┌─────────────────────────────────────┐
    │  Text reply       │  OR  │  assistant message with tool_calls   │
    │  → append, done   │      │  → for each call, in order:          │
    └───────────────────┘      │      parse args, call remote tool,   │
                               │      append tool message             │
                               │  → complete(..., phase=TERMINAL)     │
                               │  → append final assistant, done      │
                               └─────────────────────────────────────┘

Tool calls run **sequentially** so the transcript is reproducible and
statements reach the database in the order the model proposed them.

After ``max_tool_rounds`` rounds (one by default) the next completion is made
in the ``TERMINAL`` phase, where tool calling is disabled, so every turn ends
with a natural-language answer.

Failures of a single tool call (error results, protocol errors, transport
errors) become ``tool`` messages; the model then explains them to the user.
If the completion backend itself fails, the turn is rolled back: the
conversation is left exactly as it was before ``submit()``.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from mcp import types

from ..errors import TurnInProgress
from ..tools.formatters import MAX_RESULT_CHARS, render_tool_result
from .registry import ToolDescriptor

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A model-proposed invocation; ``arguments`` is the raw JSON payload."""

    id: str
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> dict[str, Any]:
        """Decode ``arguments``; malformed or non-object payloads yield ``{}``."""
        try:
            parsed = json.loads(self.arguments) if self.arguments else {}
        except (TypeError, ValueError):
            logger.warning("Malformed arguments for tool call %s (%s); using {}", self.id, self.name)
            return {}
        return parsed if isinstance(parsed, dict) else {}


@dataclass(frozen=True)
class Message:
    role: Role
    content: str = ""
    tool_calls: Optional[tuple[ToolCall, ...]] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    is_error: bool = False


class Conversation:
    """Ordered message history for one chat.

    ``reset()`` clears everything except the system prompt.
    """

    def __init__(self, system_prompt: str | None = None):
        self.system_prompt = system_prompt
        self._messages: list[Message] = []
        self.reset()

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        if message.role is Role.TOOL:
            self._check_tool_reply(message)
        self._messages.append(message)

    def _check_tool_reply(self, message: Message) -> None:
        for previous in reversed(self._messages):
            if previous.role is Role.TOOL:
                continue
            if previous.role is Role.ASSISTANT and previous.tool_calls:
                if any(call.id == message.tool_call_id for call in previous.tool_calls):
                    return
            break
        raise ValueError(
            f"Tool message {message.tool_call_id!r} does not answer the preceding assistant message"
        )

    def truncate(self, length: int) -> None:
        """Drop every message after the first ``length``."""
        del self._messages[length:]

    def reset(self) -> None:
        self._messages = []
        if self.system_prompt:
            self._messages.append(Message(Role.SYSTEM, self.system_prompt))

    def __len__(self) -> int:
        return len(self._messages)


class CompletionPhase(enum.Enum):
    TOOLS = "tools"         # the model may propose tool calls
    TERMINAL = "terminal"   # tool calling disabled; a text answer is required


@dataclass(frozen=True)
class CompletionRequest:
    messages: Sequence[Message]
    tools: Sequence[ToolDescriptor] = ()
    phase: CompletionPhase = CompletionPhase.TOOLS


@dataclass(frozen=True)
class CompletionReply:
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)


class CompletionClient(Protocol):
    async def complete(self, request: CompletionRequest) -> CompletionReply: ...


class ToolInvoker(Protocol):
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> types.CallToolResult: ...


class ToolCallingOrchestrator:
    """Drives the model ↔ tools loop for one conversation.

    Parameters
    ----------
    llm:
        Completion backend (see ``core/llm.py``).
    tools:
        Remote tool interface, typically a connected ``RemoteToolClient``.
    catalog:
        Tool descriptors offered to the model.
    conversation:
        History to extend; a new empty one is used when omitted.
    max_tool_rounds:
        Tool-calling rounds allowed per turn before the terminal phase.
    max_result_chars:
        Display cap applied to each tool result folded into the history.
    """

    def __init__(
        self,
        llm: CompletionClient,
        tools: ToolInvoker,
        catalog: Sequence[ToolDescriptor],
        conversation: Conversation | None = None,
        max_tool_rounds: int = 1,
        max_result_chars: int = MAX_RESULT_CHARS,
    ):
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self.llm = llm
        self.tools = tools
        self.catalog = list(catalog)
        self.conversation = conversation if conversation is not None else Conversation()
        self.max_tool_rounds = max_tool_rounds
        self.max_result_chars = max_result_chars
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def submit(self, text: str) -> Message:
        """Run one user turn and return the final assistant message."""
        if self._in_flight:
            raise TurnInProgress("A turn is already in progress")
        self._in_flight = True
        checkpoint = len(self.conversation)
        try:
            return await self._run_turn(text)
        except BaseException:
            # A failed turn leaves no partial messages behind.
            self.conversation.truncate(checkpoint)
            raise
        finally:
            self._in_flight = False

    async def _run_turn(self, text: str) -> Message:
        self.conversation.append(Message(Role.USER, text))
        phase = CompletionPhase.TOOLS
        rounds = 0

        while True:
            reply = await self.llm.complete(
                CompletionRequest(self.conversation.messages, self.catalog, phase)
            )

            if phase is CompletionPhase.TERMINAL or not reply.tool_calls:
                final = Message(Role.ASSISTANT, reply.content or "")
                self.conversation.append(final)
                return final

            self.conversation.append(
                Message(Role.ASSISTANT, reply.content or "", tool_calls=tuple(reply.tool_calls))
            )
            for call in reply.tool_calls:
                self.conversation.append(await self._run_tool_call(call))

            rounds += 1
            if rounds >= self.max_tool_rounds:
                phase = CompletionPhase.TERMINAL

    async def _run_tool_call(self, call: ToolCall) -> Message:
        arguments = call.parse_arguments()
        logger.info("Executing tool: %s | args: %s", call.name, list(arguments.keys()))
        try:
            result = await self.tools.call_tool(call.name, arguments)
        except Exception as e:
            logger.exception("Error executing tool '%s'", call.name)
            return Message(
                Role.TOOL,
                f"Error: {e}",
                tool_call_id=call.id,
                tool_name=call.name,
                is_error=True,
            )
        return Message(
            Role.TOOL,
            render_tool_result(result, self.max_result_chars),
            tool_call_id=call.id,
            tool_name=call.name,
            is_error=bool(result.isError),
        )
