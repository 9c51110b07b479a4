"""
Public entry points: the ``Client`` facade and module-level call functions.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from .adapters.base import ChatAdapter, validate_request
from .loop.config import ToolLoopConfig
from .loop.core import ToolLoop, ToolLoopResult, ToolLoopStream
from .router import new_failover_router
from .stream import EventStream
from .tools.executor import ToolExecutor
from .types import ChatRequest, ChatResponse, Message, ToolDefinition


def _loop_config(
    max_iterations: Optional[int], config: Optional[ToolLoopConfig]
) -> ToolLoopConfig:
    config = config or ToolLoopConfig()
    if max_iterations is not None:
        config = replace(config, max_iterations=max_iterations)
    return config


class Client:
    """
    Thin facade binding the call operations to one adapter.

    Example:
        >>> client = Client(new_failover_router([OpenAIAdapter(), AnthropicAdapter()]))
        >>> response = await client.chat(
        ...     ChatRequest(model="gpt-4o-mini", messages=[Message.user("Hi")])
        ... )
    """

    def __init__(self, adapter: ChatAdapter):
        self.adapter = adapter

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Single blocking call."""
        validate_request(request)
        return await self.adapter.chat(request)

    async def chat_stream(self, request: ChatRequest) -> EventStream:
        """Open a stream. Initiation failures are raised here."""
        validate_request(request)
        return await self.adapter.chat_stream(request)

    async def chat_with_tools(
        self,
        tool_executor: ToolExecutor,
        initial_messages: Iterable[Message],
        model: str,
        max_iterations: Optional[int] = None,
        *,
        tools: Optional[Sequence[ToolDefinition]] = None,
        config: Optional[ToolLoopConfig] = None,
    ) -> ToolLoopResult:
        """
        Run the tool loop to completion.

        Args:
            tool_executor: Executor for the calls the model requests.
            initial_messages: Conversation to start from.
            model: Model identifier.
            max_iterations: Iteration ceiling; overrides ``config.max_iterations``.
                Defaults to 8.
            tools: Tool definitions to advertise. Defaults to the executor's
                definitions when it is a ToolRegistry.
            config: Further loop options.
        """
        loop = ToolLoop(
            self.adapter,
            tool_executor,
            model=model,
            tools=tools,
            config=_loop_config(max_iterations, config),
        )
        return await loop.run(initial_messages)

    def chat_with_tools_streaming(
        self,
        tool_executor: ToolExecutor,
        initial_messages: Iterable[Message],
        model: str,
        max_iterations: Optional[int] = None,
        *,
        tools: Optional[Sequence[ToolDefinition]] = None,
        config: Optional[ToolLoopConfig] = None,
    ) -> ToolLoopStream:
        """
        Start a streaming tool loop.

        Invalid input raises ``InvalidRequestError`` before anything is
        returned; later failures end the returned stream.
        """
        loop = ToolLoop(
            self.adapter,
            tool_executor,
            model=model,
            tools=tools,
            config=_loop_config(max_iterations, config),
        )
        return loop.stream(initial_messages)


async def chat(adapter: ChatAdapter, request: ChatRequest) -> ChatResponse:
    """Send ``request`` through ``adapter`` and return the response."""
    return await Client(adapter).chat(request)


async def chat_stream(adapter: ChatAdapter, request: ChatRequest) -> EventStream:
    """Open a stream for ``request`` on ``adapter``."""
    return await Client(adapter).chat_stream(request)


async def chat_with_tools(
    adapter: ChatAdapter,
    tool_executor: ToolExecutor,
    initial_messages: Iterable[Message],
    model: str,
    max_iterations: Optional[int] = None,
    *,
    tools: Optional[Sequence[ToolDefinition]] = None,
    config: Optional[ToolLoopConfig] = None,
) -> ToolLoopResult:
    """Run a blocking tool loop. See ``Client.chat_with_tools``."""
    return await Client(adapter).chat_with_tools(
        tool_executor, initial_messages, model, max_iterations, tools=tools, config=config
    )


def chat_with_tools_streaming(
    adapter: ChatAdapter,
    tool_executor: ToolExecutor,
    initial_messages: Iterable[Message],
    model: str,
    max_iterations: Optional[int] = None,
    *,
    tools: Optional[Sequence[ToolDefinition]] = None,
    config: Optional[ToolLoopConfig] = None,
) -> ToolLoopStream:
    """Start a streaming tool loop. See ``Client.chat_with_tools_streaming``."""
    return Client(adapter).chat_with_tools_streaming(
        tool_executor, initial_messages, model, max_iterations, tools=tools, config=config
    )


__all__ = [
    "Client",
    "chat",
    "chat_stream",
    "chat_with_tools",
    "chat_with_tools_streaming",
    "new_failover_router",
]
