"""
Hello World: your first forgeai tool loop.

No API key needed. A ScriptedAdapter plays the model, so the whole loop runs
offline: the "model" asks for two tools, reads their results, and answers.

Prerequisites: None
    pip install forgeai

Run:
    python examples/01_hello_world.py
"""

import asyncio

from forgeai import ChatResponse, Message, ScriptedAdapter, ToolCall, ToolRegistry, chat_with_tools

registry = ToolRegistry()


@registry.tool(description="Look up the price of a product")
def get_price(product: str) -> str:
    prices = {"laptop": "$999", "phone": "$699", "headphones": "$149"}
    return prices.get(product.lower(), f"No price found for {product}")


@registry.tool(description="Check if a product is in stock")
def check_stock(product: str) -> str:
    stock = {"laptop": "5 left", "phone": "Out of stock", "headphones": "20 left"}
    return stock.get(product.lower(), f"Unknown product: {product}")


async def main() -> None:
    adapter = ScriptedAdapter(
        [
            ChatResponse(
                tool_calls=[
                    ToolCall(id="call_0", name="get_price", arguments={"product": "laptop"}),
                    ToolCall(id="call_1", name="check_stock", arguments={"product": "laptop"}),
                ]
            ),
            ChatResponse(output_text="A laptop costs $999 and there are 5 left."),
        ]
    )

    result = await chat_with_tools(
        adapter, registry, [Message.user("How much is a laptop?")], "scripted-model", 3
    )

    print(f"Response: {result.output_text}")
    print(f"Iterations: {result.iterations}")
    for invocation in result.invocations:
        print(f"  {invocation.name}({invocation.arguments}) -> {invocation.output}")


if __name__ == "__main__":
    asyncio.run(main())
