"""
Failover router: an adapter that delegates to an ordered list of adapters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence

from .adapters.base import AdapterInfo, ChatAdapter
from .exceptions import RETRYABLE_KINDS, ConfigError, ErrorKind, ForgeError
from .stream import EventStream
from .types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

ROUTER_NAME = "failover-router"


@dataclass(frozen=True)
class FailoverPolicy:
    """
    Controls when the router moves on to the next adapter.

    Attributes:
        max_adapters_to_try: Upper bound on adapters attempted per call.
            None tries every adapter.
        retry_on: Error kinds that trigger failover. Anything else is
            returned to the caller immediately.
    """

    max_adapters_to_try: Optional[int] = None
    retry_on: FrozenSet[ErrorKind] = RETRYABLE_KINDS

    def __post_init__(self):
        if self.max_adapters_to_try is not None and self.max_adapters_to_try < 1:
            raise ConfigError("max_adapters_to_try must be at least 1")
        object.__setattr__(self, "retry_on", frozenset(self.retry_on))

    def should_failover(self, error: ForgeError) -> bool:
        return error.kind in self.retry_on


class FailoverRouter:
    """
    Tries adapters in list order until one succeeds.

    A retryable failure moves on to the next adapter; a non-retryable one is
    returned immediately. When every adapter fails, the last error is raised.
    Streaming calls fail over on initiation errors only: once a stream is
    open, a failure terminates that stream and no other adapter is tried.

    The router satisfies ``ChatAdapter`` itself, so routers nest.

    Example:
        >>> router = FailoverRouter([OpenAIAdapter(), AnthropicAdapter()])
        >>> response = await router.chat(request)
    """

    def __init__(self, adapters: Sequence[ChatAdapter], policy: Optional[FailoverPolicy] = None):
        if not adapters:
            raise ConfigError("failover router requires at least one adapter")
        self._adapters: List[ChatAdapter] = list(adapters)
        self.policy = policy or FailoverPolicy()

    @property
    def adapters(self) -> List[ChatAdapter]:
        return list(self._adapters)

    def _candidates(self) -> List[ChatAdapter]:
        limit = self.policy.max_adapters_to_try
        return self._adapters if limit is None else self._adapters[:limit]

    def info(self) -> AdapterInfo:
        infos = [adapter.info() for adapter in self._adapters]
        first = infos[0]
        return AdapterInfo(
            name=ROUTER_NAME,
            base_url=first.base_url,
            capabilities=first.capabilities.intersection(*(i.capabilities for i in infos[1:])),
        )

    async def chat(self, request: ChatRequest) -> ChatResponse:
        last_error: Optional[ForgeError] = None
        for adapter in self._candidates():
            try:
                return await adapter.chat(request)
            except ForgeError as exc:
                if not self.policy.should_failover(exc):
                    raise
                self._log_failover(adapter, exc)
                last_error = exc
        raise last_error

    async def chat_stream(self, request: ChatRequest) -> EventStream:
        last_error: Optional[ForgeError] = None
        for adapter in self._candidates():
            try:
                return await adapter.chat_stream(request)
            except ForgeError as exc:
                if not self.policy.should_failover(exc):
                    raise
                self._log_failover(adapter, exc)
                last_error = exc
        raise last_error

    def _log_failover(self, adapter: ChatAdapter, error: ForgeError) -> None:
        logger.warning(
            "adapter %s failed (%s): %s; trying next adapter",
            adapter.info().name,
            error.kind.value,
            error.detail,
        )


def new_failover_router(
    adapters: Sequence[ChatAdapter], policy: Optional[FailoverPolicy] = None
) -> FailoverRouter:
    """
    Build a failover router over ``adapters``.

    Raises:
        ConfigError: If ``adapters`` is empty.
    """
    return FailoverRouter(adapters, policy)


__all__ = ["FailoverPolicy", "FailoverRouter", "new_failover_router", "ROUTER_NAME"]
