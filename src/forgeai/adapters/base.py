"""
Adapter abstraction for provider-agnostic chat.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field, fields
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from ..exceptions import (
    AuthError,
    ForgeError,
    InvalidRequestError,
    ProviderError,
    RateLimitedError,
    UnsupportedError,
)
from ..stream import EventStream, StreamEvent
from ..types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilityMatrix:
    """Feature flags an adapter advertises."""

    streaming: bool = False
    tools: bool = False
    structured_output: bool = False
    multimodal_input: bool = False
    citations: bool = False

    def intersection(self, *others: "CapabilityMatrix") -> "CapabilityMatrix":
        """Capabilities offered by this matrix and every one of ``others``."""
        values = {}
        for flag in fields(self):
            values[flag.name] = getattr(self, flag.name) and all(
                getattr(other, flag.name) for other in others
            )
        return CapabilityMatrix(**values)


@dataclass(frozen=True)
class AdapterInfo:
    """Self-description of an adapter."""

    name: str
    base_url: Optional[str] = None
    capabilities: CapabilityMatrix = field(default_factory=CapabilityMatrix)


@runtime_checkable
class ChatAdapter(Protocol):
    """
    Interface every adapter must satisfy.

    Adapters are stateless per call and safe to share across concurrent tasks.
    ``chat_stream`` raises initiation failures from the awaited call itself;
    failures after the stream is open terminate the returned ``EventStream``.
    """

    def info(self) -> AdapterInfo:
        ...

    async def chat(self, request: ChatRequest) -> ChatResponse:
        ...

    async def chat_stream(self, request: ChatRequest) -> EventStream:
        ...


def validate_request(request: ChatRequest) -> None:
    """
    Check the preconditions shared by every adapter.

    Raises:
        InvalidRequestError: If the model is blank or there are no messages.
    """
    if not request.model or not request.model.strip():
        raise InvalidRequestError("model must not be empty")
    if not request.messages:
        raise InvalidRequestError("messages must not be empty")


def classify_status(status: Optional[int], detail: str) -> ForgeError:
    """Map an upstream HTTP status to the matching ``ForgeError``."""
    if status in (401, 403):
        return AuthError(detail)
    if status == 429:
        return RateLimitedError(detail)
    return ProviderError(detail)


class BaseAdapter(abc.ABC):
    """
    Shared request validation for concrete adapters.

    Subclasses implement ``info``, ``_chat`` and ``_open_stream``. The public
    ``chat``/``chat_stream`` methods reject malformed requests and requests
    needing capabilities the adapter does not advertise before any subclass
    code runs. Requests are never mutated.
    """

    @abc.abstractmethod
    def info(self) -> AdapterInfo:
        """Describe this adapter."""

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self._check(request, streaming=False)
        return await self._chat(request)

    async def chat_stream(self, request: ChatRequest) -> EventStream:
        self._check(request, streaming=True)
        source = await self._open_stream(request)
        logger.debug("opened stream on %s for model %s", self.info().name, request.model)
        return EventStream(source)

    def _check(self, request: ChatRequest, *, streaming: bool) -> None:
        validate_request(request)
        info = self.info()
        if streaming and not info.capabilities.streaming:
            raise UnsupportedError(f"{info.name} does not support streaming")
        if request.tools and not info.capabilities.tools:
            raise UnsupportedError(f"{info.name} does not support tools")

    @abc.abstractmethod
    async def _chat(self, request: ChatRequest) -> ChatResponse:
        """Perform one blocking call against the backend."""

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """
        Open a streaming call and return the raw event iterator.

        Implementations must raise connection and status errors here, before
        returning, so callers can fail over on them.
        """
        raise UnsupportedError(f"{self.info().name} does not support streaming")


__all__ = [
    "CapabilityMatrix",
    "AdapterInfo",
    "ChatAdapter",
    "BaseAdapter",
    "validate_request",
    "classify_status",
]
