"""
Tool-call loop orchestrator.

A run alternates between generating (one adapter call) and executing the tool
calls the model asked for, until the model answers without tool calls or the
iteration ceiling is reached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, List, Optional, Sequence

from ..adapters.base import ChatAdapter, validate_request
from ..exceptions import (
    InvalidRequestError,
    IterationLimitExceeded,
    ToolError,
    ToolExecutionError,
)
from ..stream import Done, StreamAccumulator, StreamEvent
from ..tools.executor import ToolExecutor, invoke_tool
from ..tools.registry import ToolRegistry
from ..types import ChatRequest, ChatResponse, Message, ToolCall, ToolDefinition
from ..usage import LoopUsage
from .config import ToolLoopConfig

logger = logging.getLogger(__name__)


@dataclass
class ToolInvocation:
    """Record of one executed tool call."""

    call_id: str
    name: str
    arguments: Any
    output: Any


@dataclass
class ToolLoopResult:
    """
    Outcome of a completed tool loop.

    Attributes:
        response: The terminal adapter response (no tool calls).
        messages: Full conversation, ending with the terminal assistant message.
        invocations: Every executed tool call, in execution order.
        iterations: Number of adapter calls made.
        usage: Token usage summed over all adapter calls.
    """

    response: ChatResponse
    messages: List[Message]
    invocations: List[ToolInvocation]
    iterations: int
    usage: LoopUsage

    @property
    def output_text(self) -> str:
        return self.response.output_text


@dataclass
class _LoopState:
    messages: List[Message]
    invocations: List[ToolInvocation] = field(default_factory=list)
    usage: LoopUsage = field(default_factory=LoopUsage)
    iteration: int = 0
    result: Optional[ToolLoopResult] = None


class ToolLoopStream:
    """
    Async iterator over the events of a streaming tool loop.

    Text, tool-call and usage events of every turn are forwarded as they
    arrive. A single ``Done`` is yielded after the terminal turn; once it has
    been seen, ``result`` holds the ``ToolLoopResult``. Failures end iteration
    with the underlying exception.
    """

    def __init__(self, events: AsyncIterator[StreamEvent], state: _LoopState):
        self._events = events
        self._state = state

    def __aiter__(self) -> "ToolLoopStream":
        return self

    async def __anext__(self) -> StreamEvent:
        return await self._events.__anext__()

    @property
    def result(self) -> ToolLoopResult:
        if self._state.result is None:
            raise RuntimeError("tool loop stream has not completed")
        return self._state.result

    async def collect(self) -> ToolLoopResult:
        """Drain the stream and return the final result."""
        async for _ in self:
            pass
        return self.result

    async def aclose(self) -> None:
        await self._events.aclose()

    async def __aenter__(self) -> "ToolLoopStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class ToolLoop:
    """
    Drives a multi-step tool-calling conversation against one adapter.

    The adapter may be a FailoverRouter; the loop does not care.

    Example:
        >>> loop = ToolLoop(adapter, registry, model="gpt-4o-mini")
        >>> result = await loop.run([Message.user("What time is it?")])
        >>> print(result.output_text)
    """

    def __init__(
        self,
        adapter: ChatAdapter,
        tool_executor: ToolExecutor,
        *,
        model: str,
        tools: Optional[Sequence[ToolDefinition]] = None,
        config: Optional[ToolLoopConfig] = None,
    ):
        """
        Args:
            adapter: Adapter (or router) used for every turn.
            tool_executor: Executor that runs requested tool calls.
            model: Model identifier sent with every request.
            tools: Tool definitions advertised to the model. Defaults to the
                registry's definitions when ``tool_executor`` is a ToolRegistry.
            config: Loop configuration.

        Raises:
            InvalidRequestError: If ``config.max_iterations`` is below 1.
        """
        self.adapter = adapter
        self.tool_executor = tool_executor
        self.model = model
        self.config = config or ToolLoopConfig()
        if self.config.max_iterations < 1:
            raise InvalidRequestError("max_iterations must be at least 1")
        if tools is None and isinstance(tool_executor, ToolRegistry):
            tools = tool_executor.definitions()
        self.tools = tuple(tools or ())

    def _call_hook(self, hook_name: str, *args: Any) -> None:
        """Call a hook if configured. Hook failures are logged and ignored."""
        hooks = self.config.hooks
        if not hooks or hook_name not in hooks:
            return
        try:
            hooks[hook_name](*args)
        except Exception:
            logger.warning("hook %r raised; ignoring", hook_name, exc_info=True)

    def _request(self, state: _LoopState) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            messages=tuple(state.messages),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            tools=self.tools,
            metadata=dict(self.config.metadata),
        )

    def _start(self, messages: Iterable[Message]) -> _LoopState:
        state = _LoopState(messages=list(messages))
        validate_request(self._request(state))
        return state

    def _begin_iteration(self, state: _LoopState) -> ChatRequest:
        state.iteration += 1
        logger.debug("tool loop iteration %d/%d", state.iteration, self.config.max_iterations)
        self._call_hook("on_iteration_start", state.iteration, list(state.messages))
        request = self._request(state)
        self._call_hook("on_llm_start", request)
        return request

    def _fail(self, state: _LoopState, error: BaseException) -> None:
        self._call_hook(
            "on_error",
            error,
            {"iteration": state.iteration, "messages": list(state.messages)},
        )

    async def run(self, messages: Iterable[Message]) -> ToolLoopResult:
        """
        Run the loop to completion.

        Args:
            messages: Initial conversation. Must not be empty.

        Returns:
            ToolLoopResult for the terminal turn.

        Raises:
            InvalidRequestError: If the initial request is malformed.
            ForgeError: Any adapter failure, unchanged.
            ToolError: The first tool failure, with ``call_id`` set.
            IterationLimitExceeded: If tool calls are still pending after
                ``max_iterations`` adapter calls.
        """
        state = self._start(messages)
        try:
            while True:
                request = self._begin_iteration(state)
                response = await self.adapter.chat(request)
                self._call_hook("on_llm_end", response)
                if await self._advance(state, response):
                    return state.result
        except Exception as exc:
            self._fail(state, exc)
            raise

    def stream(self, messages: Iterable[Message]) -> ToolLoopStream:
        """
        Run the loop with streaming turns.

        The initial request is validated before this returns, so malformed
        input raises ``InvalidRequestError`` immediately. Everything else
        surfaces while iterating the returned stream.
        """
        state = self._start(messages)
        return ToolLoopStream(self._stream_events(state), state)

    async def _stream_events(self, state: _LoopState) -> AsyncIterator[StreamEvent]:
        try:
            while True:
                request = self._begin_iteration(state)
                accumulator = StreamAccumulator()
                stream = await self.adapter.chat_stream(request)
                async with stream:
                    async for event in stream:
                        accumulator.add(event)
                        if not isinstance(event, Done):
                            yield event
                response = accumulator.to_response(model=request.model)
                self._call_hook("on_llm_end", response)
                if await self._advance(state, response):
                    yield Done()
                    return
        except Exception as exc:
            self._fail(state, exc)
            raise

    async def _advance(self, state: _LoopState, response: ChatResponse) -> bool:
        """Record a turn. Returns True once the loop reached its final answer."""
        state.usage.add_usage(response.usage)
        state.messages.append(response.to_message())

        if not response.tool_calls:
            state.result = ToolLoopResult(
                response=response,
                messages=list(state.messages),
                invocations=list(state.invocations),
                iterations=state.iteration,
                usage=state.usage,
            )
            self._call_hook("on_loop_end", state.result)
            return True

        # Results of tools run now could only be read by a further adapter call.
        if state.iteration >= self.config.max_iterations:
            raise IterationLimitExceeded(self.config.max_iterations, state.messages)

        await self._execute_tools(state, response.tool_calls)
        return False

    async def _execute_tools(self, state: _LoopState, calls: Sequence[ToolCall]) -> None:
        outputs: List[Any] = []
        if self.config.parallel_tool_execution and len(calls) > 1:
            outcomes = await asyncio.gather(
                *(self._run_tool(call) for call in calls), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            outputs = list(outcomes)
        else:
            for call in calls:
                outputs.append(await self._run_tool(call))

        for call, output in zip(calls, outputs):
            state.messages.append(Message.tool_result(call, output))
            state.invocations.append(
                ToolInvocation(call_id=call.id, name=call.name, arguments=call.arguments, output=output)
            )
            state.usage.record_tool(call.name)

    async def _run_tool(self, call: ToolCall) -> Any:
        self._call_hook("on_tool_start", call)
        start = time.perf_counter()
        timeout = self.config.tool_timeout_seconds
        try:
            pending = invoke_tool(self.tool_executor, call.name, call.arguments)
            if timeout is None:
                output = await pending
            else:
                try:
                    output = await asyncio.wait_for(pending, timeout)
                except asyncio.TimeoutError as exc:
                    raise ToolExecutionError(
                        f"{call.name}: timed out after {timeout}s", tool_name=call.name
                    ) from exc
        except ToolError as exc:
            exc.call_id = call.id
            if exc.tool_name is None:
                exc.tool_name = call.name
            logger.warning("tool %s (call %s) failed: %s", call.name, call.id, exc)
            self._call_hook("on_tool_error", call, exc)
            raise

        self._call_hook("on_tool_end", call, output, time.perf_counter() - start)
        return output


__all__ = ["ToolLoop", "ToolLoopResult", "ToolLoopStream", "ToolInvocation"]
