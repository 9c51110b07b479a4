"""
Failover: route one request across several providers.

The router tries adapters in order. Transport, provider and rate-limit errors
move on to the next adapter; auth and invalid-request errors come straight
back. Providers without credentials are skipped when building the list, and
the offline LocalAdapter is always last so the demo answers either way.

Prerequisites: optional OPENAI_API_KEY / ANTHROPIC_API_KEY / GEMINI_API_KEY
Run: python examples/02_failover.py
"""

import asyncio
import logging

from forgeai import (
    AnthropicAdapter,
    ChatRequest,
    Client,
    ConfigError,
    GeminiAdapter,
    LocalAdapter,
    Message,
    OpenAIAdapter,
    ScriptedAdapter,
    TransportError,
    new_failover_router,
)


def available_adapters():
    adapters = [ScriptedAdapter([TransportError("simulated outage")], name="flaky-primary")]
    for adapter_cls in (OpenAIAdapter, AnthropicAdapter, GeminiAdapter):
        try:
            adapters.append(adapter_cls())
        except ConfigError:
            print(f"Skipping {adapter_cls.__name__}: not configured")
    adapters.append(LocalAdapter())
    return adapters


async def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    router = new_failover_router(available_adapters())
    info = router.info()
    print(f"Router: {info.name}, tools supported by every adapter: {info.capabilities.tools}")

    request = ChatRequest(
        model="gpt-4o-mini",
        messages=[Message.user("Say hello in one short sentence.")],
        max_tokens=40,
    )
    response = await Client(router).chat(request)
    print(f"Response: {response.output_text}")


if __name__ == "__main__":
    asyncio.run(main())
