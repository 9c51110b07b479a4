"""
Observability Hooks: lifecycle callbacks on a streaming tool loop.

Uses OpenAI when OPENAI_API_KEY is set, otherwise a scripted stream.

Prerequisites: optional OPENAI_API_KEY
Run: python examples/03_observability_hooks.py
"""

import asyncio
import time
from typing import Any, Dict

from forgeai import (
    ConfigError,
    Done,
    Message,
    OpenAIAdapter,
    ScriptedAdapter,
    TextDelta,
    ToolCallDelta,
    ToolLoopConfig,
    ToolRegistry,
    UsageEvent,
    UsageStats,
    chat_with_tools_streaming,
)

registry = ToolRegistry()


@registry.tool(description="Get the current weather for a city")
def get_weather(city: str) -> dict:
    time.sleep(0.1)
    return {"city": city, "conditions": "sunny", "temp_c": 22}


def build_adapter():
    try:
        return OpenAIAdapter(), "gpt-4o-mini"
    except ConfigError:
        print("Using a scripted stream (no API calls)\n")
        return (
            ScriptedAdapter(
                streams=[
                    [
                        ToolCallDelta(call_id="call_0", name="get_weather", arguments_delta='{"city": '),
                        ToolCallDelta(call_id="call_0", arguments_delta='"Lisbon"}', complete=True),
                        UsageEvent(UsageStats(input_tokens=42, output_tokens=12)),
                        Done(),
                    ],
                    [
                        TextDelta("It is sunny "),
                        TextDelta("and 22°C in Lisbon."),
                        UsageEvent(UsageStats(input_tokens=80, output_tokens=9)),
                        Done(),
                    ],
                ]
            ),
            "scripted-model",
        )


class Timeline:
    def __init__(self) -> None:
        self.started = time.perf_counter()

    def log(self, label: str) -> None:
        print(f"\n   [{time.perf_counter() - self.started:6.3f}s] {label}")

    def hooks(self) -> Dict[str, Any]:
        return {
            "on_iteration_start": lambda i, messages: self.log(f"iteration {i} ({len(messages)} messages)"),
            "on_tool_start": lambda call: self.log(f"tool {call.name} started"),
            "on_tool_end": lambda call, output, duration: self.log(f"tool {call.name} finished in {duration:.3f}s"),
            "on_tool_error": lambda call, error: self.log(f"tool {call.name} failed: {error}"),
            "on_loop_end": lambda result: self.log(f"done after {result.iterations} iterations"),
        }


async def main() -> None:
    adapter, model = build_adapter()
    timeline = Timeline()
    config = ToolLoopConfig(max_iterations=4, hooks=timeline.hooks())

    stream = chat_with_tools_streaming(
        adapter, registry, [Message.user("What's the weather in Lisbon?")], model, config=config
    )
    async with stream:
        async for event in stream:
            if isinstance(event, TextDelta):
                print(event.delta, end="", flush=True)

    print()
    print(stream.result.usage)


if __name__ == "__main__":
    asyncio.run(main())
