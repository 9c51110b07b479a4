"""
Anthropic adapter over the Messages API.
"""

from __future__ import annotations

import os
from typing import Any, AsyncIterator, Dict, List, Optional

from ..env import load_default_env
from ..exceptions import ConfigError, ForgeError, ProviderConfigurationError, ProviderError, TransportError
from ..stream import Done, StreamEvent, TextDelta, ToolCallDelta, UsageEvent, aclose_resource
from ..types import ChatRequest, ChatResponse, Message, Role, ToolCall
from ..usage import UsageStats
from .base import AdapterInfo, BaseAdapter, CapabilityMatrix, classify_status

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MAX_TOKENS = 1024


class AnthropicAdapter(BaseAdapter):
    """Anthropic Messages API adapter built on the ``anthropic`` SDK."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Any = None,
    ):
        """
        Args:
            api_key: API key. Defaults to ``ANTHROPIC_API_KEY``.
            base_url: API base URL. Defaults to ``ANTHROPIC_BASE_URL`` or the public API.
            timeout: Request timeout in seconds passed to the SDK client.
            default_max_tokens: ``max_tokens`` sent when the request sets none;
                the Messages API requires one.
            client: Pre-built ``anthropic.AsyncAnthropic``-compatible client.

        Raises:
            ProviderConfigurationError: If no API key is available.
            ConfigError: If the ``anthropic`` package is not installed.
        """
        try:
            import anthropic
        except ImportError as exc:
            raise ConfigError(
                "anthropic package not installed. Install with `pip install anthropic`."
            ) from exc
        self._anthropic = anthropic

        load_default_env()
        self.base_url = base_url or os.getenv("ANTHROPIC_BASE_URL") or DEFAULT_BASE_URL
        self.default_max_tokens = default_max_tokens
        if client is None:
            api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ProviderConfigurationError(
                    provider_name="Anthropic",
                    missing_config="API key",
                    env_var="ANTHROPIC_API_KEY",
                )
            client = anthropic.AsyncAnthropic(api_key=api_key, base_url=self.base_url, timeout=timeout)
        self._client = client

    def info(self) -> AdapterInfo:
        return AdapterInfo(
            name=self.name,
            base_url=self.base_url,
            capabilities=CapabilityMatrix(
                streaming=True,
                tools=True,
                multimodal_input=True,
                citations=True,
            ),
        )

    # ------------------------------------------------------------------
    # Request translation
    # ------------------------------------------------------------------

    def _format_blocks(self, message: Message) -> List[Dict[str, Any]]:
        if message.role == Role.TOOL:
            return [
                {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content,
                }
            ]
        blocks: List[Dict[str, Any]] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for call in message.tool_calls:
            blocks.append(
                {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
            )
        return blocks

    def _format_messages(self, messages: Any) -> List[Dict[str, Any]]:
        formatted: List[Dict[str, Any]] = []
        for message in messages:
            if message.role == Role.SYSTEM:
                continue
            role = "assistant" if message.role == Role.ASSISTANT else "user"
            blocks = self._format_blocks(message)
            if not blocks:
                continue
            # The API requires alternating roles; consecutive tool results share one user turn.
            if formatted and formatted[-1]["role"] == role:
                formatted[-1]["content"].extend(blocks)
            else:
                formatted.append({"role": role, "content": blocks})
        return formatted

    def _build_payload(self, request: ChatRequest, *, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or self.default_max_tokens,
            "messages": self._format_messages(request.messages),
        }
        system = [m.content for m in request.messages if m.role == Role.SYSTEM]
        if system:
            payload["system"] = "\n\n".join(system)
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.tools:
            payload["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.input_schema}
                for t in request.tools
            ]
        if stream:
            payload["stream"] = True
        return payload

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    def _classify(self, exc: Exception) -> ForgeError:
        if isinstance(exc, ForgeError):
            return exc
        if isinstance(exc, self._anthropic.APIConnectionError):
            return TransportError(str(exc))
        if isinstance(exc, self._anthropic.APIStatusError):
            return classify_status(exc.status_code, str(exc))
        return ProviderError(f"{type(exc).__name__}: {exc}")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        payload = self._build_payload(request, stream=False)
        try:
            response = await self._client.messages.create(**payload)
        except Exception as exc:
            raise self._classify(exc) from exc
        return self._parse_response(response)

    def _parse_response(self, response: Any) -> ChatResponse:
        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in response.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.id, name=block.name, arguments=block.input or {})
                )

        return ChatResponse(
            output_text="".join(text_parts),
            tool_calls=tool_calls,
            usage=self._parse_usage(getattr(response, "usage", None)),
            id=getattr(response, "id", "") or "",
            model=getattr(response, "model", "") or "",
        )

    @staticmethod
    def _parse_usage(usage: Any) -> Optional[UsageStats]:
        if usage is None:
            return None
        return UsageStats(
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        payload = self._build_payload(request, stream=True)
        try:
            response = await self._client.messages.create(**payload)
        except Exception as exc:
            raise self._classify(exc) from exc
        return self._iter_events(response)

    async def _iter_events(self, response: Any) -> AsyncIterator[StreamEvent]:
        # Deltas reference content blocks by index; tool_use blocks carry the id.
        ids_by_index: Dict[int, str] = {}
        try:
            async for event in response:
                if event.type == "message_start":
                    usage = self._parse_usage(getattr(event.message, "usage", None))
                    if usage is not None:
                        yield UsageEvent(usage)
                elif event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        ids_by_index[event.index] = block.id
                        yield ToolCallDelta(call_id=block.id, name=block.name)
                    elif block.type == "text" and getattr(block, "text", ""):
                        yield TextDelta(block.text)
                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "text_delta":
                        yield TextDelta(delta.text)
                    elif delta.type == "input_json_delta" and event.index in ids_by_index:
                        yield ToolCallDelta(
                            call_id=ids_by_index[event.index],
                            arguments_delta=delta.partial_json,
                        )
                elif event.type == "content_block_stop":
                    if event.index in ids_by_index:
                        yield ToolCallDelta(call_id=ids_by_index[event.index], complete=True)
                elif event.type == "message_delta":
                    usage = self._parse_usage(getattr(event, "usage", None))
                    if usage is not None:
                        yield UsageEvent(usage)
                elif event.type == "message_stop":
                    break
                elif event.type == "error":
                    error = getattr(event, "error", None)
                    raise ProviderError(getattr(error, "message", None) or "stream error")
        except ForgeError:
            raise
        except Exception as exc:
            raise self._classify(exc) from exc
        finally:
            await aclose_resource(response)
        yield Done()


__all__ = ["AnthropicAdapter"]
