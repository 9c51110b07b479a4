"""
OpenAI adapter over the Chat Completions API.
"""

from __future__ import annotations

import json
import os
from typing import Any, AsyncIterator, Dict, List, Optional

from ..env import load_default_env
from ..exceptions import ConfigError, ForgeError, ProviderConfigurationError, ProviderError, TransportError
from ..stream import Done, StreamEvent, TextDelta, ToolCallDelta, UsageEvent, aclose_resource
from ..types import ChatRequest, ChatResponse, Message, Role, ToolCall
from ..usage import UsageStats
from .base import AdapterInfo, BaseAdapter, CapabilityMatrix, classify_status

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIAdapter(BaseAdapter):
    """
    Adapter that speaks to OpenAI's Chat Completions API via the ``openai`` SDK.

    Any OpenAI-compatible endpoint works by passing ``base_url`` (or setting
    ``OPENAI_BASE_URL``).
    """

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Any = None,
    ):
        """
        Args:
            api_key: API key. Defaults to ``OPENAI_API_KEY``.
            base_url: API base URL. Defaults to ``OPENAI_BASE_URL`` or the public API.
            timeout: Request timeout in seconds passed to the SDK client.
            client: Pre-built ``openai.AsyncOpenAI``-compatible client.

        Raises:
            ProviderConfigurationError: If no API key is available.
            ConfigError: If the ``openai`` package is not installed.
        """
        try:
            import openai
        except ImportError as exc:
            raise ConfigError(
                "openai package not installed. Install with `pip install openai`."
            ) from exc
        self._openai = openai

        load_default_env()
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ProviderConfigurationError(
                    provider_name="OpenAI", missing_config="API key", env_var="OPENAI_API_KEY"
                )
            client = openai.AsyncOpenAI(api_key=api_key, base_url=self.base_url, timeout=timeout)
        self._client = client

    def info(self) -> AdapterInfo:
        return AdapterInfo(
            name=self.name,
            base_url=self.base_url,
            capabilities=CapabilityMatrix(
                streaming=True,
                tools=True,
                structured_output=True,
                multimodal_input=True,
            ),
        )

    # ------------------------------------------------------------------
    # Request translation
    # ------------------------------------------------------------------

    def _format_message(self, message: Message) -> Dict[str, Any]:
        if message.role == Role.TOOL:
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            }
        if message.role == Role.ASSISTANT and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ],
            }
        return {"role": message.role.value, "content": message.content}

    def _build_payload(self, request: ChatRequest, *, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [self._format_message(m) for m in request.messages],
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.input_schema,
                    },
                }
                for t in request.tools
            ]
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    def _classify(self, exc: Exception) -> ForgeError:
        if isinstance(exc, ForgeError):
            return exc
        if isinstance(exc, self._openai.APIConnectionError):
            return TransportError(str(exc))
        if isinstance(exc, self._openai.APIStatusError):
            return classify_status(exc.status_code, str(exc))
        return ProviderError(f"{type(exc).__name__}: {exc}")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        payload = self._build_payload(request, stream=False)
        try:
            response = await self._client.chat.completions.create(**payload)
        except Exception as exc:
            raise self._classify(exc) from exc
        return self._parse_response(response)

    def _parse_response(self, response: Any) -> ChatResponse:
        if not response.choices:
            raise ProviderError("OpenAI response contained no choices")
        message = response.choices[0].message

        tool_calls: List[ToolCall] = []
        for call in message.tool_calls or []:
            raw = call.function.arguments or ""
            try:
                arguments = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError as exc:
                raise ProviderError(f"tool call '{call.id}' has malformed arguments: {exc}") from exc
            tool_calls.append(ToolCall(id=call.id, name=call.function.name, arguments=arguments))

        return ChatResponse(
            output_text=message.content or "",
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
            input_tokens=usage.prompt_tokens or 0,
            output_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        )

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        payload = self._build_payload(request, stream=True)
        try:
            response = await self._client.chat.completions.create(**payload)
        except Exception as exc:
            raise self._classify(exc) from exc
        return self._iter_events(response)

    async def _iter_events(self, response: Any) -> AsyncIterator[StreamEvent]:
        # Continuation fragments carry only the choice-local index, not the id.
        ids_by_index: Dict[int, str] = {}
        try:
            async for chunk in response:
                usage = self._parse_usage(getattr(chunk, "usage", None))
                if usage is not None:
                    yield UsageEvent(usage)

                for choice in chunk.choices or []:
                    delta = choice.delta
                    if delta is not None and delta.content:
                        yield TextDelta(delta.content)

                    for fragment in (delta.tool_calls if delta is not None else None) or []:
                        call_id = ids_by_index.setdefault(
                            fragment.index, fragment.id or f"call_{fragment.index}"
                        )
                        function = fragment.function
                        yield ToolCallDelta(
                            call_id=call_id,
                            name=function.name if function is not None else None,
                            arguments_delta=(function.arguments or "") if function is not None else "",
                        )

                    if choice.finish_reason == "tool_calls":
                        for call_id in ids_by_index.values():
                            yield ToolCallDelta(call_id=call_id, complete=True)
        except ForgeError:
            raise
        except Exception as exc:
            raise self._classify(exc) from exc
        finally:
            await aclose_resource(response)
        yield Done()


__all__ = ["OpenAIAdapter"]
