"""
Tests for the blocking tool loop.

Tests cover:
- Final answer without tool calls ends after one adapter call
- Conversation order: user, assistant with calls, tool results, final answer
- Iteration ceiling: exactly max_iterations adapter calls, then IterationLimitExceeded
- Tool failures abort the loop with call_id set
- Adapter failures propagate unchanged
- Parallel tool execution keeps request order
- Tool timeouts
- Tools default to the registry's definitions
- Lifecycle hooks, including a failing hook
- Usage aggregation
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from forgeai import (
    ChatResponse,
    FunctionToolExecutor,
    InvalidRequestError,
    IterationLimitExceeded,
    Message,
    RateLimitedError,
    Role,
    ScriptedAdapter,
    ToolCall,
    ToolDefinition,
    ToolExecutionError,
    ToolLoop,
    ToolLoopConfig,
    ToolNotFoundError,
    ToolRegistry,
    UsageStats,
)


def _calls(*names: str, prefix: str = "call") -> List[ToolCall]:
    return [ToolCall(id=f"{prefix}_{i}", name=name, arguments={}) for i, name in enumerate(names)]


def _tool_turn(*names: str, prefix: str = "call") -> ChatResponse:
    return ChatResponse(
        tool_calls=_calls(*names, prefix=prefix),
        usage=UsageStats(input_tokens=10, output_tokens=2),
    )


def _final(text: str = "All done.") -> ChatResponse:
    return ChatResponse(output_text=text, usage=UsageStats(input_tokens=20, output_tokens=5))


def _registry() -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(description="Return the current time")
    def time_now() -> dict:
        return {"time": "12:00"}

    @registry.tool(description="Echo text back")
    def echo(text: str = "default") -> str:
        return text

    return registry


class TestToolLoopBasics:
    @pytest.mark.asyncio
    async def test_final_answer_without_tools(self) -> None:
        adapter = ScriptedAdapter([_final("Hello!")])
        loop = ToolLoop(adapter, _registry(), model="m")

        result = await loop.run([Message.user("hi")])

        assert result.output_text == "Hello!"
        assert result.iterations == 1
        assert result.invocations == []
        assert adapter.calls == 1

    @pytest.mark.asyncio
    async def test_conversation_order(self) -> None:
        adapter = ScriptedAdapter([_tool_turn("time_now"), _final("It is 12:00.")])
        loop = ToolLoop(adapter, _registry(), model="m")

        result = await loop.run([Message.user("What time is it?")])

        roles = [m.role for m in result.messages]
        assert roles == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert result.messages[1].tool_calls[0].name == "time_now"
        assert result.messages[2].tool_call_id == "call_0"
        assert result.messages[2].content == '{"time": "12:00"}'
        assert result.output_text == "It is 12:00."
        assert result.iterations == 2
        assert result.invocations[0].output == {"time": "12:00"}

        second_request = adapter.requests[1]
        assert [m.role for m in second_request.messages] == roles[:3]

    @pytest.mark.asyncio
    async def test_initial_messages_not_mutated(self) -> None:
        messages = [Message.user("What time is it?")]
        adapter = ScriptedAdapter([_tool_turn("time_now"), _final()])
        await ToolLoop(adapter, _registry(), model="m").run(messages)
        assert len(messages) == 1

    @pytest.mark.asyncio
    async def test_registry_definitions_advertised(self) -> None:
        adapter = ScriptedAdapter([_final()])
        await ToolLoop(adapter, _registry(), model="m").run([Message.user("hi")])
        assert [t.name for t in adapter.requests[0].tools] == ["time_now", "echo"]

    @pytest.mark.asyncio
    async def test_explicit_tools_override(self) -> None:
        adapter = ScriptedAdapter([_final()])
        tools = [ToolDefinition(name="echo", description="Echo")]
        await ToolLoop(adapter, _registry(), model="m", tools=tools).run([Message.user("hi")])
        assert [t.name for t in adapter.requests[0].tools] == ["echo"]

    @pytest.mark.asyncio
    async def test_config_forwarded(self) -> None:
        adapter = ScriptedAdapter([_final()])
        config = ToolLoopConfig(temperature=0.2, max_tokens=99, metadata={"trace": "t-1"})
        await ToolLoop(adapter, _registry(), model="m", config=config).run([Message.user("hi")])

        request = adapter.requests[0]
        assert request.temperature == 0.2
        assert request.max_tokens == 99
        assert request.metadata == {"trace": "t-1"}

    @pytest.mark.asyncio
    async def test_usage_aggregated(self) -> None:
        adapter = ScriptedAdapter([_tool_turn("time_now", "echo"), _final()])
        result = await ToolLoop(adapter, _registry(), model="m").run([Message.user("hi")])

        assert result.usage.total_input_tokens == 30
        assert result.usage.total_output_tokens == 7
        assert result.usage.tool_usage == {"time_now": 1, "echo": 1}


class TestIterationLimit:
    @pytest.mark.asyncio
    async def test_exactly_max_iterations_adapter_calls(self) -> None:
        adapter = ScriptedAdapter([_tool_turn("time_now")])
        loop = ToolLoop(adapter, _registry(), model="m", config=ToolLoopConfig(max_iterations=3))

        with pytest.raises(IterationLimitExceeded) as excinfo:
            await loop.run([Message.user("loop forever")])

        assert adapter.calls == 3
        assert excinfo.value.max_iterations == 3
        snapshot = excinfo.value.messages
        assert snapshot[-1].role is Role.ASSISTANT
        assert snapshot[-1].tool_calls

    @pytest.mark.asyncio
    async def test_final_answer_on_last_iteration_succeeds(self) -> None:
        adapter = ScriptedAdapter([_tool_turn("time_now"), _final("made it")])
        loop = ToolLoop(adapter, _registry(), model="m", config=ToolLoopConfig(max_iterations=2))

        result = await loop.run([Message.user("hi")])
        assert result.output_text == "made it"

    def test_zero_iterations_rejected(self) -> None:
        with pytest.raises(InvalidRequestError):
            ToolLoop(ScriptedAdapter(), _registry(), model="m", config=ToolLoopConfig(max_iterations=0))

    @pytest.mark.asyncio
    async def test_empty_messages_rejected(self) -> None:
        adapter = ScriptedAdapter([_final()])
        with pytest.raises(InvalidRequestError):
            await ToolLoop(adapter, _registry(), model="m").run([])
        assert adapter.calls == 0


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_tool_aborts_with_call_id(self) -> None:
        adapter = ScriptedAdapter([_tool_turn("missing_tool"), _final()])
        loop = ToolLoop(adapter, _registry(), model="m")

        with pytest.raises(ToolNotFoundError) as excinfo:
            await loop.run([Message.user("hi")])

        assert excinfo.value.call_id == "call_0"
        assert adapter.calls == 1

    @pytest.mark.asyncio
    async def test_tool_execution_failure(self) -> None:
        executor = FunctionToolExecutor({"explode": lambda args: 1 / 0})
        adapter = ScriptedAdapter([_tool_turn("explode")])

        with pytest.raises(ToolExecutionError) as excinfo:
            await ToolLoop(adapter, executor, model="m").run([Message.user("hi")])

        assert excinfo.value.call_id == "call_0"
        assert excinfo.value.tool_name == "explode"
        assert "ZeroDivisionError" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_later_calls_skipped_after_failure(self) -> None:
        seen: List[str] = []

        def record(name: str):
            def handler(args):
                seen.append(name)
                if name == "bad":
                    raise RuntimeError("nope")
                return "ok"

            return handler

        executor = FunctionToolExecutor({n: record(n) for n in ("good", "bad", "never")})
        adapter = ScriptedAdapter([_tool_turn("good", "bad", "never")])

        with pytest.raises(ToolExecutionError) as excinfo:
            await ToolLoop(adapter, executor, model="m").run([Message.user("hi")])

        assert excinfo.value.call_id == "call_1"
        assert seen == ["good", "bad"]

    @pytest.mark.asyncio
    async def test_adapter_error_propagates(self) -> None:
        adapter = ScriptedAdapter([RateLimitedError("slow down")])
        with pytest.raises(RateLimitedError):
            await ToolLoop(adapter, _registry(), model="m").run([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_tool_timeout(self) -> None:
        async def slow(args):
            await asyncio.sleep(1)
            return "late"

        executor = FunctionToolExecutor({"slow": slow})
        adapter = ScriptedAdapter([_tool_turn("slow")])
        config = ToolLoopConfig(tool_timeout_seconds=0.01)

        with pytest.raises(ToolExecutionError, match="timed out") as excinfo:
            await ToolLoop(adapter, executor, model="m", config=config).run([Message.user("hi")])
        assert excinfo.value.call_id == "call_0"


class TestParallelExecution:
    @pytest.mark.asyncio
    async def test_results_appended_in_request_order(self) -> None:
        finished: List[str] = []

        def make(name: str, delay: float):
            async def handler(args):
                await asyncio.sleep(delay)
                finished.append(name)
                return name

            return handler

        executor = FunctionToolExecutor(
            {"slow": make("slow", 0.05), "medium": make("medium", 0.02), "fast": make("fast", 0.0)}
        )
        adapter = ScriptedAdapter([_tool_turn("slow", "medium", "fast"), _final()])
        config = ToolLoopConfig(parallel_tool_execution=True)

        result = await ToolLoop(adapter, executor, model="m", config=config).run([Message.user("go")])

        assert finished == ["fast", "medium", "slow"]
        tool_messages = [m for m in result.messages if m.role is Role.TOOL]
        assert [m.content for m in tool_messages] == ["slow", "medium", "fast"]
        assert [m.tool_call_id for m in tool_messages] == ["call_0", "call_1", "call_2"]

    @pytest.mark.asyncio
    async def test_first_failure_in_call_order_raised(self) -> None:
        async def fail(args):
            raise ValueError("broken")

        async def ok(args):
            return "fine"

        executor = FunctionToolExecutor({"ok": ok, "fail": fail})
        adapter = ScriptedAdapter([_tool_turn("ok", "fail", "fail")])
        config = ToolLoopConfig(parallel_tool_execution=True)

        with pytest.raises(ToolExecutionError) as excinfo:
            await ToolLoop(adapter, executor, model="m", config=config).run([Message.user("go")])
        assert excinfo.value.call_id == "call_1"


class TestHooks:
    @pytest.mark.asyncio
    async def test_hook_sequence(self) -> None:
        events: List[str] = []
        durations: List[float] = []

        hooks: Dict[str, Any] = {
            "on_iteration_start": lambda i, messages: events.append(f"iteration:{i}"),
            "on_llm_start": lambda request: events.append("llm_start"),
            "on_llm_end": lambda response: events.append("llm_end"),
            "on_tool_start": lambda call: events.append(f"tool_start:{call.name}"),
            "on_tool_end": lambda call, output, duration: (
                events.append(f"tool_end:{call.name}"),
                durations.append(duration),
            ),
            "on_loop_end": lambda result: events.append("loop_end"),
        }
        adapter = ScriptedAdapter([_tool_turn("time_now"), _final()])
        loop = ToolLoop(adapter, _registry(), model="m", config=ToolLoopConfig(hooks=hooks))

        await loop.run([Message.user("hi")])

        assert events == [
            "iteration:1",
            "llm_start",
            "llm_end",
            "tool_start:time_now",
            "tool_end:time_now",
            "iteration:2",
            "llm_start",
            "llm_end",
            "loop_end",
        ]
        assert durations[0] >= 0

    @pytest.mark.asyncio
    async def test_error_hooks(self) -> None:
        tool_errors: List[str] = []
        loop_errors: List[Any] = []
        hooks = {
            "on_tool_error": lambda call, error: tool_errors.append(call.id),
            "on_error": lambda error, context: loop_errors.append((type(error), context["iteration"])),
        }
        adapter = ScriptedAdapter([_tool_turn("missing")])
        loop = ToolLoop(adapter, _registry(), model="m", config=ToolLoopConfig(hooks=hooks))

        with pytest.raises(ToolNotFoundError):
            await loop.run([Message.user("hi")])

        assert tool_errors == ["call_0"]
        assert loop_errors == [(ToolNotFoundError, 1)]

    @pytest.mark.asyncio
    async def test_failing_hook_is_ignored(self) -> None:
        def broken(*args):
            raise RuntimeError("hook bug")

        hooks = {"on_llm_start": broken, "on_loop_end": broken}
        adapter = ScriptedAdapter([_final("still works")])
        loop = ToolLoop(adapter, _registry(), model="m", config=ToolLoopConfig(hooks=hooks))

        result = await loop.run([Message.user("hi")])
        assert result.output_text == "still works"
