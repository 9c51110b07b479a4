"""
Tests for FailoverRouter.

Tests cover:
- First adapter success short-circuits the rest
- Retryable errors (transport, provider, rate limited) move to the next adapter
- Non-retryable errors (auth, invalid request, unsupported) return immediately
- The last error is raised when every adapter fails
- Streaming fails over on initiation errors but never mid-stream
- info() reports the capability intersection
- FailoverPolicy limits and opt-in kinds
- Routers nest
"""

from __future__ import annotations

import logging

import pytest

from forgeai import (
    AuthError,
    CapabilityMatrix,
    ChatAdapter,
    ChatRequest,
    ChatResponse,
    ConfigError,
    Done,
    ErrorKind,
    FailoverPolicy,
    FailoverRouter,
    InvalidRequestError,
    Message,
    ProviderError,
    RateLimitedError,
    ScriptedAdapter,
    TextDelta,
    TransportError,
    UnsupportedError,
    new_failover_router,
)
from forgeai.router import ROUTER_NAME


def _request() -> ChatRequest:
    return ChatRequest(model="m", messages=[Message.user("hi")])


def _ok(text: str) -> ChatResponse:
    return ChatResponse(output_text=text)


class TestConstruction:
    def test_empty_adapter_list_rejected(self) -> None:
        with pytest.raises(ConfigError):
            new_failover_router([])

    def test_invalid_policy_rejected(self) -> None:
        with pytest.raises(ConfigError):
            FailoverPolicy(max_adapters_to_try=0)

    def test_router_is_an_adapter(self) -> None:
        router = new_failover_router([ScriptedAdapter([_ok("a")])])
        assert isinstance(router, ChatAdapter)


class TestChat:
    @pytest.mark.asyncio
    async def test_first_success_wins(self) -> None:
        first = ScriptedAdapter([_ok("first")])
        second = ScriptedAdapter([_ok("second")])

        response = await new_failover_router([first, second]).chat(_request())

        assert response.output_text == "first"
        assert second.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [TransportError("reset"), ProviderError("500"), RateLimitedError("429")])
    async def test_retryable_error_fails_over(self, error) -> None:
        first = ScriptedAdapter([error], name="a")
        second = ScriptedAdapter([_ok("B")], name="b")

        response = await new_failover_router([first, second]).chat(_request())

        assert response.output_text == "B"
        assert first.calls == 1
        assert second.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AuthError("bad key"), InvalidRequestError("bad"), UnsupportedError("no")])
    async def test_non_retryable_error_returns_immediately(self, error) -> None:
        first = ScriptedAdapter([error])
        second = ScriptedAdapter([_ok("B")])

        with pytest.raises(type(error)):
            await new_failover_router([first, second]).chat(_request())
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_last_error_raised_when_all_fail(self) -> None:
        first = ScriptedAdapter([TransportError("first down")])
        second = ScriptedAdapter([RateLimitedError("second busy")])

        with pytest.raises(RateLimitedError, match="second busy"):
            await new_failover_router([first, second]).chat(_request())

    @pytest.mark.asyncio
    async def test_failover_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        first = ScriptedAdapter([TransportError("reset")], name="primary")
        second = ScriptedAdapter([_ok("ok")])

        with caplog.at_level(logging.WARNING, logger="forgeai.router"):
            await new_failover_router([first, second]).chat(_request())

        assert "adapter primary failed (transport)" in caplog.text

    @pytest.mark.asyncio
    async def test_adapters_tried_in_order(self) -> None:
        adapters = [ScriptedAdapter([ProviderError("x")], name=str(i)) for i in range(3)]
        with pytest.raises(ProviderError):
            await new_failover_router(adapters).chat(_request())
        assert [a.calls for a in adapters] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_nested_routers(self) -> None:
        inner = new_failover_router([ScriptedAdapter([TransportError("x")]), ScriptedAdapter([TransportError("y")])])
        outer = new_failover_router([inner, ScriptedAdapter([_ok("outer fallback")])])

        response = await outer.chat(_request())
        assert response.output_text == "outer fallback"


class TestPolicy:
    @pytest.mark.asyncio
    async def test_max_adapters_to_try(self) -> None:
        adapters = [
            ScriptedAdapter([TransportError("a")]),
            ScriptedAdapter([TransportError("b")]),
            ScriptedAdapter([_ok("c")]),
        ]
        router = FailoverRouter(adapters, FailoverPolicy(max_adapters_to_try=2))

        with pytest.raises(TransportError, match="b"):
            await router.chat(_request())
        assert adapters[2].calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_opt_in(self) -> None:
        no_tools = ScriptedAdapter([UnsupportedError("no tools")])
        fallback = ScriptedAdapter([_ok("handled")])
        policy = FailoverPolicy(retry_on=frozenset({ErrorKind.TRANSPORT, ErrorKind.UNSUPPORTED}))

        response = await FailoverRouter([no_tools, fallback], policy).chat(_request())
        assert response.output_text == "handled"

    def test_should_failover(self) -> None:
        policy = FailoverPolicy()
        assert policy.should_failover(TransportError())
        assert not policy.should_failover(AuthError())


class TestChatStream:
    @pytest.mark.asyncio
    async def test_initiation_failure_fails_over(self) -> None:
        first = ScriptedAdapter(streams=[TransportError("refused")])
        second = ScriptedAdapter(streams=[[TextDelta("from second"), Done()]])

        stream = await new_failover_router([first, second]).chat_stream(_request())
        events = [event async for event in stream]

        assert events == [TextDelta("from second"), Done()]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_does_not_fail_over(self) -> None:
        first = ScriptedAdapter(streams=[[TextDelta("partial"), TransportError("cut")]])
        second = ScriptedAdapter(streams=[[TextDelta("never"), Done()]])

        stream = await new_failover_router([first, second]).chat_stream(_request())

        received = []
        with pytest.raises(TransportError):
            async for event in stream:
                received.append(event)

        assert received == [TextDelta("partial")]
        assert second.stream_calls == 0

    @pytest.mark.asyncio
    async def test_last_initiation_error_raised_when_all_fail(self) -> None:
        first = ScriptedAdapter(streams=[TransportError("refused")])
        second = ScriptedAdapter(streams=[ProviderError("overloaded")])

        with pytest.raises(ProviderError, match="overloaded"):
            await new_failover_router([first, second]).chat_stream(_request())
        assert first.stream_calls == 1
        assert second.stream_calls == 1

    @pytest.mark.asyncio
    async def test_non_retryable_initiation_failure(self) -> None:
        first = ScriptedAdapter(streams=[AuthError("bad key")])
        second = ScriptedAdapter(streams=[[Done()]])

        with pytest.raises(AuthError):
            await new_failover_router([first, second]).chat_stream(_request())
        assert second.stream_calls == 0


class TestInfo:
    def test_capability_intersection(self) -> None:
        a = ScriptedAdapter(
            capabilities=CapabilityMatrix(streaming=True, tools=True, citations=True),
            base_url="https://a.example",
        )
        b = ScriptedAdapter(capabilities=CapabilityMatrix(streaming=True, tools=False, citations=True))

        info = new_failover_router([a, b]).info()

        assert info.name == ROUTER_NAME
        assert info.base_url == "https://a.example"
        assert info.capabilities == CapabilityMatrix(streaming=True, citations=True)
