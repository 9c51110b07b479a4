"""
Offline adapters for testing and development.

Neither adapter calls an external API. ``LocalAdapter`` echoes the latest user
message; ``ScriptedAdapter`` replays a queue of canned outcomes.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, List, Optional, Sequence, Union

from ..exceptions import ForgeError, ProviderError
from ..stream import Done, StreamEvent, TextDelta, UsageEvent
from ..types import ChatRequest, ChatResponse, Role
from ..usage import UsageStats
from .base import AdapterInfo, BaseAdapter, CapabilityMatrix

ChatOutcome = Union[ChatResponse, ForgeError]
StreamScript = Union[Sequence[Any], ForgeError]


class LocalAdapter(BaseAdapter):
    """
    Local fallback adapter.

    This does not call a model. It echoes the latest user content and is useful
    for offline/manual testing or as a safe default.
    """

    def __init__(self, name: str = "local"):
        self.name = name

    def info(self) -> AdapterInfo:
        return AdapterInfo(
            name=self.name,
            base_url=None,
            capabilities=CapabilityMatrix(streaming=True),
        )

    def _reply(self, request: ChatRequest) -> str:
        last_user = next((m for m in reversed(request.messages) if m.role == Role.USER), None)
        user_text = last_user.content if last_user else ""
        return f"[local adapter: {request.model}] {user_text or 'No user message provided.'}"

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        text = self._reply(request)
        return ChatResponse(
            output_text=text,
            usage=UsageStats(input_tokens=0, output_tokens=len(text.split())),
            model=request.model,
        )

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        text = self._reply(request)

        async def _tokens() -> AsyncIterator[StreamEvent]:
            words = text.split()
            for index, word in enumerate(words):
                await asyncio.sleep(0)
                yield TextDelta(word if index == len(words) - 1 else word + " ")
            yield UsageEvent(UsageStats(output_tokens=len(words)))
            yield Done()

        return _tokens()


class ScriptedAdapter(BaseAdapter):
    """
    Deterministic adapter driven by queues of canned outcomes.

    Each ``chat`` call consumes the next entry of ``responses``: a
    ``ChatResponse`` is returned, a ``ForgeError`` is raised. Each
    ``chat_stream`` call consumes the next entry of ``streams``: a
    ``ForgeError`` is raised at initiation, a sequence of events is streamed
    (exception instances inside it are raised mid-stream). Once a queue is
    down to its last entry, that entry is repeated.

    Every received request is kept in ``requests`` for assertions.

    Example:
        >>> adapter = ScriptedAdapter(responses=[ChatResponse(output_text="hi")])
        >>> (await adapter.chat(request)).output_text
        'hi'
    """

    def __init__(
        self,
        responses: Optional[Sequence[ChatOutcome]] = None,
        *,
        streams: Optional[Sequence[StreamScript]] = None,
        name: str = "scripted",
        base_url: Optional[str] = None,
        capabilities: Optional[CapabilityMatrix] = None,
    ):
        self.name = name
        self.base_url = base_url
        self.capabilities = capabilities or CapabilityMatrix(streaming=True, tools=True)
        self.responses: List[ChatOutcome] = list(responses or [])
        self.streams: List[StreamScript] = list(streams or [])
        self.requests: List[ChatRequest] = []
        self.calls = 0
        self.stream_calls = 0

    def info(self) -> AdapterInfo:
        return AdapterInfo(name=self.name, base_url=self.base_url, capabilities=self.capabilities)

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        index = self.calls
        self.calls += 1
        if not self.responses:
            raise ProviderError(f"{self.name}: no scripted response")
        outcome = self.responses[min(index, len(self.responses) - 1)]
        if isinstance(outcome, ForgeError):
            raise outcome
        return outcome

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        self.requests.append(request)
        index = self.stream_calls
        self.stream_calls += 1
        if not self.streams:
            raise ProviderError(f"{self.name}: no scripted stream")
        script = self.streams[min(index, len(self.streams) - 1)]
        if isinstance(script, ForgeError):
            raise script
        items = list(script)

        async def _replay() -> AsyncIterator[StreamEvent]:
            for item in items:
                await asyncio.sleep(0)
                if isinstance(item, BaseException):
                    raise item
                yield item

        return _replay()


__all__ = ["LocalAdapter", "ScriptedAdapter"]
