"""
sqlbridge/cli.py
================

The ``sqlbridge`` command.

- ``serve``: run the tool server with uvicorn.
- ``tools``: list a remote server's catalog.
- ``call NAME KEY=VALUE ...``: validate locally, call one tool, print the
  rendered result.
- ``chat``: interactive loop over ``ToolCallingOrchestrator``.  One turn runs
  at a time; ``/reset`` clears the conversation and ``/quit`` exits.  A failed
  turn is reported and the loop keeps prompting.
"""

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from mcp.shared.exceptions import McpError

from .config import Config
from .errors import ToolNotFound, ValidationError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlbridge",
        description="Database tool server over SSE, and a client to call it.",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: SQLBRIDGE_LOG_LEVEL or INFO).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the tool server.")
    serve.add_argument("--host", help="Bind address (default: SQLBRIDGE_HOST).")
    serve.add_argument("--port", type=int, help="Bind port (default: SQLBRIDGE_PORT).")

    for name, help_text in (
        ("tools", "List the tools a server exposes."),
        ("call", "Call one tool and print the result."),
        ("chat", "Chat with an LLM that can use the server's tools."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--url", help="SSE endpoint of the server (default: SQLBRIDGE_SERVER_URL).")
        if name == "call":
            sub.add_argument("tool", help="Tool name.")
            sub.add_argument(
                "arguments",
                nargs="*",
                metavar="KEY=VALUE",
                help="Tool arguments. Array-typed values may be JSON or comma-separated.",
            )
    return parser


def parse_pairs(pairs: Sequence[str]) -> dict[str, str]:
    arguments = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {pair!r}")
        arguments[key] = value
    return arguments


async def list_tools(config: Config, url: str) -> int:
    from .client import RemoteToolClient

    async with RemoteToolClient(url) as tools:
        catalog = await tools.list_tools()
    if not catalog:
        print("Connected (No tools found)")
        return 0
    for descriptor in catalog:
        required = ", ".join(descriptor.required) or "-"
        print(f"{descriptor.name:<16} {descriptor.description}  [required: {required}]")
    return 0


async def call_tool(config: Config, url: str, name: str, raw_args: dict[str, str]) -> int:
    from .client import RemoteToolClient
    from .core.validator import validate
    from .tools.formatters import render_tool_result

    async with RemoteToolClient(url) as tools:
        try:
            descriptor = await tools.descriptor(name)
            arguments = validate(descriptor, raw_args)
        except (ToolNotFound, ValidationError) as e:
            print(f"Error: {e}")
            return 1

        try:
            result = await tools.call_tool(name, arguments.to_dict())
        except McpError as e:
            print(f"Error: {e}")
            return 1

    print(render_tool_result(result, config.max_result_chars))
    return 1 if result.isError else 0


async def chat(config: Config, url: str) -> int:
    from .client import RemoteToolClient
    from .core.llm import GeminiCompletionClient
    from .core.orchestrator import Conversation, ToolCallingOrchestrator
    from .core.prompt_loader import load_prompt

    async with RemoteToolClient(url) as tools:
        orchestrator = ToolCallingOrchestrator(
            GeminiCompletionClient(config),
            tools,
            await tools.list_tools(),
            conversation=Conversation(load_prompt()),
            max_tool_rounds=config.max_tool_rounds,
            max_result_chars=config.max_result_chars,
        )
        print("Ready. Type /reset to start over, /quit to exit.")
        while True:
            try:
                text = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not text:
                continue
            if text == "/quit":
                break
            if text == "/reset":
                orchestrator.conversation.reset()
                print("Conversation cleared.")
                continue
            # The next prompt is only shown once this turn has finished.
            try:
                reply = await orchestrator.submit(text)
            except Exception as e:
                logger.debug("Turn failed", exc_info=True)
                print(f"Error: {e}")
                continue
            print(reply.content)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = Config.from_env()

    logging.basicConfig(level=(args.log_level or config.log_level).upper(), format=LOG_FORMAT)

    if args.command == "serve":
        from .server import run

        if args.host:
            config.host = args.host
        if args.port:
            config.port = args.port
        run(config)
        return 0

    url = args.url or config.server_url
    try:
        if args.command == "tools":
            return asyncio.run(list_tools(config, url))
        if args.command == "call":
            try:
                raw_args = parse_pairs(args.arguments)
            except argparse.ArgumentTypeError as e:
                parser.error(str(e))
            return asyncio.run(call_tool(config, url, args.tool, raw_args))
        return asyncio.run(chat(config, url))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error("Connection to %s failed: %s", url, e, exc_info=logger.isEnabledFor(logging.DEBUG))
        return 1


if __name__ == "__main__":
    sys.exit(main())
