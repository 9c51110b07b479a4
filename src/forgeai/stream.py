"""
Streaming event protocol.

Adapters produce a sequence of ``StreamEvent`` values: zero or more
``TextDelta``, ``ToolCallDelta`` and ``UsageEvent`` entries followed by exactly
one ``Done``. ``EventStream`` wraps an adapter's raw async iterator and
enforces that contract; ``StreamAccumulator`` folds events back into a
``ChatResponse``.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple, Union

from .exceptions import ForgeError, ProviderError, TransportError
from .types import ChatResponse, ToolCall
from .usage import UsageStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextDelta:
    """Incremental assistant text."""

    delta: str


@dataclass(frozen=True)
class ToolCallDelta:
    """
    Fragment of a tool call being streamed.

    Attributes:
        call_id: Identifier of the call this fragment belongs to.
        name: Tool name, present on at least one fragment per call.
        arguments_delta: Raw JSON text to append to the call's arguments.
        complete: True when no further fragments follow for this call.
    """

    call_id: str
    name: Optional[str] = None
    arguments_delta: str = ""
    complete: bool = False


@dataclass(frozen=True)
class UsageEvent:
    """Token usage reported mid-stream or at the end of a stream."""

    usage: UsageStats


@dataclass(frozen=True)
class Done:
    """Terminal marker. Nothing follows it."""


StreamEvent = Union[TextDelta, ToolCallDelta, UsageEvent, Done]

_EVENT_TYPES = (TextDelta, ToolCallDelta, UsageEvent, Done)


async def aclose_resource(resource: Any) -> None:
    """Close an SDK stream or async generator if it exposes a close method."""
    for attr in ("aclose", "close"):
        closer = getattr(resource, attr, None)
        if closer is None:
            continue
        result = closer()
        if inspect.isawaitable(result):
            await result
        return


class EventStream:
    """
    Consumer-paced async iterator over ``StreamEvent`` values.

    Guarantees seen by consumers:

    - ``Done`` is delivered exactly once, as the last event. A source that
      ends cleanly without one gets a synthesized ``Done``.
    - A delivery failure terminates iteration with a ``ForgeError``. Errors
      that are not already ``ForgeError`` are reported as ``TransportError``.
    - ``aclose()`` releases the underlying source and may be called at any
      time, any number of times.

    Example:
        >>> stream = await adapter.chat_stream(request)
        >>> async with stream:
        ...     async for event in stream:
        ...         if isinstance(event, TextDelta):
        ...             print(event.delta, end="")
    """

    def __init__(self, source: AsyncIterator[StreamEvent]):
        self._source = source
        self._finished = False
        self._closed = False
        self._close_lock = asyncio.Lock()

    @classmethod
    def from_events(cls, events: Iterable[Any]) -> "EventStream":
        """
        Build a stream from an in-memory script.

        Exception instances in ``events`` are raised at their position, which
        makes mid-stream failures easy to reproduce.
        """
        items = list(events)

        async def _generate() -> AsyncIterator[StreamEvent]:
            for item in items:
                await asyncio.sleep(0)
                if isinstance(item, BaseException):
                    raise item
                yield item

        return cls(_generate())

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> StreamEvent:
        if self._finished:
            raise StopAsyncIteration

        try:
            event = await self._source.__anext__()
        except StopAsyncIteration:
            logger.debug("stream source ended without Done; synthesizing one")
            await self._finish()
            return Done()
        except ForgeError:
            await self._finish()
            raise
        except Exception as exc:
            await self._finish()
            raise TransportError(str(exc) or type(exc).__name__) from exc

        if not isinstance(event, _EVENT_TYPES):
            await self._finish()
            raise ProviderError(f"unexpected stream event {type(event).__name__}")

        if isinstance(event, Done):
            await self._finish()
        return event

    async def _finish(self) -> None:
        self._finished = True
        await self.aclose()

    async def aclose(self) -> None:
        """Release the underlying source and stop iteration."""
        async with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._finished = True
            await aclose_resource(self._source)

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def collect(self, model: str = "") -> ChatResponse:
        """Drain the stream and fold it into a ``ChatResponse``."""
        accumulator = StreamAccumulator()
        async with self:
            async for event in self:
                accumulator.add(event)
        return accumulator.to_response(model=model)


@dataclass
class _PendingCall:
    call_id: str
    name: Optional[str] = None
    fragments: List[str] = field(default_factory=list)
    complete: bool = False


class StreamAccumulator:
    """
    Folds stream events into text, tool calls and usage.

    Tool-call fragments are grouped by ``call_id`` and concatenated in arrival
    order. Calls are reported in order of their first fragment, so interleaved
    fragments of different calls never mix.
    """

    def __init__(self) -> None:
        self._text: List[str] = []
        self._calls: Dict[str, _PendingCall] = {}
        self.usage: Optional[UsageStats] = None
        self.done = False

    def add(self, event: StreamEvent) -> None:
        if self.done:
            raise ProviderError("stream event received after Done")

        if isinstance(event, TextDelta):
            self._text.append(event.delta)
        elif isinstance(event, ToolCallDelta):
            self._add_tool_delta(event)
        elif isinstance(event, UsageEvent):
            self.usage = event.usage if self.usage is None else self.usage.merge(event.usage)
        elif isinstance(event, Done):
            self.done = True
            for pending in self._calls.values():
                pending.complete = True
        else:
            raise ProviderError(f"unexpected stream event {type(event).__name__}")

    def _add_tool_delta(self, event: ToolCallDelta) -> None:
        if not event.call_id:
            raise ProviderError("tool call fragment without call id")
        pending = self._calls.get(event.call_id)
        if pending is None:
            pending = self._calls[event.call_id] = _PendingCall(event.call_id)
        elif pending.complete:
            raise ProviderError(f"tool call '{event.call_id}' received data after completion")
        if event.name and pending.name is None:
            pending.name = event.name
        if event.arguments_delta:
            pending.fragments.append(event.arguments_delta)
        if event.complete:
            pending.complete = True

    @property
    def text(self) -> str:
        return "".join(self._text)

    def tool_calls(self) -> Tuple[ToolCall, ...]:
        """
        Assemble every completed call.

        Raises:
            ProviderError: If a call has no name or its arguments are not valid JSON.
        """
        calls = []
        for pending in self._calls.values():
            if not pending.complete:
                continue
            if not pending.name:
                raise ProviderError(f"tool call '{pending.call_id}' has no name")
            raw = "".join(pending.fragments).strip()
            try:
                arguments = json.loads(raw) if raw else {}
            except json.JSONDecodeError as exc:
                raise ProviderError(
                    f"tool call '{pending.call_id}' has malformed arguments: {exc}"
                ) from exc
            calls.append(ToolCall(id=pending.call_id, name=pending.name, arguments=arguments))
        return tuple(calls)

    def to_response(self, model: str = "") -> ChatResponse:
        return ChatResponse(
            output_text=self.text,
            tool_calls=list(self.tool_calls()),
            usage=self.usage,
            model=model,
        )


async def collect_text(stream: EventStream) -> str:
    """Concatenate every ``TextDelta`` of ``stream``."""
    response = await stream.collect()
    return response.output_text


def response_events(response: ChatResponse) -> List[StreamEvent]:
    """Render a complete response as the event sequence a live stream would produce."""
    events: List[StreamEvent] = []
    if response.output_text:
        events.append(TextDelta(response.output_text))
    for call in response.tool_calls:
        events.append(
            ToolCallDelta(
                call_id=call.id,
                name=call.name,
                arguments_delta=json.dumps(call.arguments),
                complete=True,
            )
        )
    if response.usage is not None:
        events.append(UsageEvent(response.usage))
    events.append(Done())
    return events


__all__ = [
    "TextDelta",
    "ToolCallDelta",
    "UsageEvent",
    "Done",
    "StreamEvent",
    "EventStream",
    "StreamAccumulator",
    "collect_text",
    "response_events",
    "aclose_resource",
]
