"""
CLI entrypoint for forgeai.

Examples:
    forgeai list-tools
    forgeai chat --provider openai --fallback anthropic --model gpt-4o-mini --prompt "Hello"
    forgeai run --provider openai --model gpt-4o-mini --prompt "What time is it in UTC?" --stream
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import logging
import sys
from typing import List, Optional

from .adapters.anthropic_adapter import AnthropicAdapter
from .adapters.base import ChatAdapter
from .adapters.gemini_adapter import GeminiAdapter
from .adapters.openai_adapter import OpenAIAdapter
from .adapters.stubs import LocalAdapter
from .client import Client, new_failover_router
from .exceptions import ConfigError, ForgeAIError
from .loop.config import ToolLoopConfig
from .stream import TextDelta
from .tools import ToolRegistry
from .types import ChatRequest, Message

PROVIDERS = ("openai", "anthropic", "gemini", "local")


def _build_adapter(name: str) -> ChatAdapter:
    if name == "openai":
        return OpenAIAdapter()
    if name == "anthropic":
        return AnthropicAdapter()
    if name == "gemini":
        return GeminiAdapter()
    if name == "local":
        return LocalAdapter()
    raise ConfigError(f"Unknown provider '{name}'.")


def _build_target(args: argparse.Namespace) -> ChatAdapter:
    adapters = [_build_adapter(args.provider)]
    adapters.extend(_build_adapter(name) for name in args.fallback or [])
    if len(adapters) == 1:
        return adapters[0]
    return new_failover_router(adapters)


def _default_tools() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(description="Echo back the provided text.")
    def echo(text: str) -> dict:
        return {"echo": text}

    @registry.tool(
        description="Current time as an ISO-8601 string.",
        param_metadata={"timezone": {"description": "Timezone label to report, e.g. UTC"}},
    )
    def time_now(timezone: str = "UTC") -> dict:
        now = datetime.datetime.now(datetime.timezone.utc)
        return {"timezone": timezone, "time": now.isoformat()}

    return registry


def list_tools(registry: ToolRegistry) -> None:
    for definition in registry.definitions():
        print(f"- {definition.name}: {definition.description}")


def _messages(args: argparse.Namespace) -> List[Message]:
    messages = []
    if args.system:
        messages.append(Message.system(args.system))
    messages.append(Message.user(args.prompt))
    return messages


async def run_chat(args: argparse.Namespace) -> None:
    client = Client(_build_target(args))
    request = ChatRequest(
        model=args.model,
        messages=_messages(args),
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    if args.stream:
        stream = await client.chat_stream(request)
        async with stream:
            async for event in stream:
                if isinstance(event, TextDelta):
                    print(event.delta, end="", flush=True)
        print()
        return

    response = await client.chat(request)
    print(response.output_text)
    if args.verbose and response.usage:
        print(f"[tokens: {response.usage.total_tokens}]", file=sys.stderr)


async def run_tools(args: argparse.Namespace) -> None:
    client = Client(_build_target(args))
    registry = _default_tools()
    config = ToolLoopConfig(
        max_iterations=args.max_iterations,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
    )
    if args.stream:
        stream = client.chat_with_tools_streaming(registry, _messages(args), args.model, config=config)
        async with stream:
            async for event in stream:
                if isinstance(event, TextDelta):
                    print(event.delta, end="", flush=True)
        print()
        result = stream.result
    else:
        result = await client.chat_with_tools(registry, _messages(args), args.model, config=config)
        print(result.output_text)

    if args.verbose:
        for invocation in result.invocations:
            print(f"[tool {invocation.name}({invocation.arguments}) -> {invocation.output}]", file=sys.stderr)
        print(result.usage, file=sys.stderr)


def _add_call_options(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("--provider", default="openai", choices=PROVIDERS, help="Primary provider")
    sub.add_argument(
        "--fallback",
        action="append",
        choices=PROVIDERS,
        help="Fallback provider, tried in order after the primary (repeatable)",
    )
    sub.add_argument("--model", default="gpt-4o-mini", help="Model name for the provider")
    sub.add_argument("--prompt", required=True, help="User prompt")
    sub.add_argument("--system", help="Optional system message")
    sub.add_argument("--temperature", type=float, default=None, help="Sampling temperature")
    sub.add_argument("--max-tokens", type=int, default=None, help="Max output tokens")
    sub.add_argument("--stream", action="store_true", help="Stream output to stdout")
    sub.add_argument("--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provider-agnostic chat and tool-loop CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list-tools", help="List built-in tools")
    list_parser.set_defaults(func="list")

    chat_parser = subparsers.add_parser("chat", help="Send one chat request")
    _add_call_options(chat_parser)
    chat_parser.set_defaults(func="chat")

    run_parser = subparsers.add_parser("run", help="Run the tool loop with the built-in tools")
    _add_call_options(run_parser)
    run_parser.add_argument("--max-iterations", type=int, default=8, help="Max tool iterations")
    run_parser.set_defaults(func="run")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if args.func == "list":
        list_tools(_default_tools())
        return 0

    try:
        if args.func == "chat":
            asyncio.run(run_chat(args))
        else:
            asyncio.run(run_tools(args))
    except ForgeAIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
