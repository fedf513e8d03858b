"""
sqlbridge/core/llm.py
=====================

Gemini implementation of the orchestrator's ``CompletionClient``.

Translation
-----------
::

    Conversation messages                 Gemini contents
    ─────────────────────                 ───────────────
    system                           →    system_instruction
    user                             →    Content(role="user", text)
    assistant (+ tool_calls)         →    Content(role="model", text + FunctionCall parts)
    consecutive tool messages        →    one Content(role="user", FunctionResponse parts)

    ToolDescriptor.input_schema      →    FunctionDeclaration.parameters (sanitized)
    CompletionPhase.TERMINAL         →    FunctionCallingConfig(mode=NONE)

Key Design Decisions
--------------------
- ``temperature=0.0``: deterministic SQL generation and factual answers.
- ``asyncio.to_thread``: ``generate_content`` is blocking; it runs in a
  worker thread to keep the event loop responsive.
- Gemini does not always assign function-call ids; missing ids are minted
  locally so tool messages can still be matched to their calls.
"""

import asyncio
import json
import logging
import os
import uuid
from typing import Any, Optional, Sequence

from google import genai
from google.genai import types

from ..config import Config
from .orchestrator import (
    CompletionPhase,
    CompletionReply,
    CompletionRequest,
    Message,
    Role,
    ToolCall,
)
from .registry import ToolDescriptor

logger = logging.getLogger(__name__)


def sanitize_schema(schema: dict[str, Any], is_root: bool = True) -> dict[str, Any]:
    """Recursively strip JSON Schema keywords that Gemini does not support.

    Gemini rejects ``additionalProperties`` and a top-level ``title``; both
    are dropped.  The result is a cleaned copy.
    """
    if not isinstance(schema, dict):
        return schema

    clean = {}
    for key, value in schema.items():
        if key in ("additionalProperties", "$schema"):
            continue
        if is_root and key == "title":
            continue

        if isinstance(value, dict):
            clean[key] = (
                {k: sanitize_schema(v, is_root=False) for k, v in value.items()}
                if key == "properties"
                else sanitize_schema(value, is_root=False)
            )
        elif isinstance(value, list):
            clean[key] = [
                sanitize_schema(i, is_root=False) if isinstance(i, dict) else i
                for i in value
            ]
        else:
            clean[key] = value

    return clean


def build_gemini_tools(catalog: Sequence[ToolDescriptor]) -> list[types.Tool]:
    """Convert tool descriptors into a single Gemini ``Tool``.

    Object schemas without properties are sent without ``parameters``;
    Gemini refuses an empty ``properties`` map.
    """
    declarations = []
    for descriptor in catalog:
        schema = sanitize_schema(descriptor.schema_dict())
        parameters = schema if schema.get("properties") else None
        declarations.append(
            types.FunctionDeclaration(
                name=descriptor.name,
                description=descriptor.description,
                parameters=parameters,
            )
        )
    if not declarations:
        return []
    return [types.Tool(function_declarations=declarations)]


def _function_response(message: Message) -> types.Part:
    try:
        payload = json.loads(message.content)
    except ValueError:
        payload = message.content
    key = "error" if message.is_error else "result"
    return types.Part(
        function_response=types.FunctionResponse(
            id=message.tool_call_id,
            name=message.tool_name or "",
            response={key: payload},
        )
    )


def to_gemini_contents(messages: Sequence[Message]) -> tuple[Optional[str], list[types.Content]]:
    """Split ``messages`` into a system instruction and Gemini contents."""
    system_parts: list[str] = []
    contents: list[types.Content] = []
    pending_responses: list[types.Part] = []

    def flush():
        if pending_responses:
            contents.append(types.Content(role="user", parts=list(pending_responses)))
            pending_responses.clear()

    for message in messages:
        if message.role is Role.TOOL:
            pending_responses.append(_function_response(message))
            continue
        flush()
        if message.role is Role.SYSTEM:
            system_parts.append(message.content)
        elif message.role is Role.USER:
            contents.append(types.Content(role="user", parts=[types.Part(text=message.content)]))
        else:
            parts = [types.Part(text=message.content)] if message.content else []
            for call in message.tool_calls or ():
                parts.append(
                    types.Part(
                        function_call=types.FunctionCall(
                            id=call.id, name=call.name, args=call.parse_arguments()
                        )
                    )
                )
            if parts:
                contents.append(types.Content(role="model", parts=parts))
    flush()

    system_instruction = "\n\n".join(p for p in system_parts if p) or None
    return system_instruction, contents


def parse_gemini_response(response: types.GenerateContentResponse) -> CompletionReply:
    """Extract text and proposed function calls from the first candidate."""
    if not response.candidates:
        return CompletionReply()
    content = response.candidates[0].content
    if not content or not content.parts:
        return CompletionReply()

    texts = []
    calls = []
    for part in content.parts:
        if part.function_call:
            fc = part.function_call
            calls.append(
                ToolCall(
                    id=fc.id or f"call_{uuid.uuid4().hex[:12]}",
                    name=fc.name,
                    arguments=json.dumps(dict(fc.args or {})),
                )
            )
        elif part.text and not getattr(part, "thought", False):
            texts.append(part.text)
    return CompletionReply(content="\n".join(texts), tool_calls=tuple(calls))


class GeminiCompletionClient:
    """``CompletionClient`` backed by ``google.genai``.

    The SDK client is created on first use so that environment variables are
    loaded before it is constructed.
    """

    def __init__(self, config: Config, client: Optional[genai.Client] = None):
        self.config = config
        self.model_name = config.model_name
        self._client = client

    @property
    def client(self) -> genai.Client:
        """Return the Gemini API client, constructing it on first access.

        Auth strategy (in priority order):
        1. ``GOOGLE_API_KEY``          → direct API key auth (local dev)
        2. Vertex AI project/location  → ADC auth (production)
        """
        if self._client is None:
            api_key = self.config.google_api_key or os.getenv("GOOGLE_API_KEY")
            if api_key:
                self._client = genai.Client(api_key=api_key)
            else:
                project = self.config.google_cloud_project or os.getenv("GOOGLE_CLOUD_PROJECT")
                location = self.config.google_cloud_location or "us-central1"
                self._client = genai.Client(vertexai=True, project=project, location=location)
        return self._client

    def build_config(self, request: CompletionRequest, system_instruction: Optional[str]) -> types.GenerateContentConfig:
        tool_config = None
        if request.phase is CompletionPhase.TERMINAL:
            tool_config = types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(
                    mode=types.FunctionCallingConfigMode.NONE
                )
            )
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=build_gemini_tools(request.tools) or None,
            tool_config=tool_config,
            temperature=0.0,
        )

    async def complete(self, request: CompletionRequest) -> CompletionReply:
        system_instruction, contents = to_gemini_contents(request.messages)
        logger.info(
            "Requesting completion | phase=%s | messages=%d",
            request.phase.value,
            len(contents),
        )
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model_name,
            contents=contents,
            config=self.build_config(request, system_instruction),
        )
        reply = parse_gemini_response(response)
        if request.phase is CompletionPhase.TERMINAL and reply.tool_calls:
            logger.warning("Dropping %d tool calls proposed in the terminal phase", len(reply.tool_calls))
            reply = CompletionReply(content=reply.content)
        return reply
