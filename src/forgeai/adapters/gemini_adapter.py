"""
Google Gemini adapter using the google-genai SDK.

Calls go through the centralized client's async surface:
``client.aio.models.generate_content`` and ``generate_content_stream``.
"""

from __future__ import annotations

import json
import os
from typing import Any, AsyncIterator, Dict, List, Optional

from ..env import first_env, load_default_env
from ..exceptions import ConfigError, ForgeError, ProviderConfigurationError, ProviderError, TransportError
from ..stream import Done, StreamEvent, TextDelta, ToolCallDelta, UsageEvent, aclose_resource
from ..types import ChatRequest, ChatResponse, Message, Role, ToolCall
from ..usage import UsageStats
from .base import AdapterInfo, BaseAdapter, CapabilityMatrix, classify_status

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


class GeminiAdapter(BaseAdapter):
    """
    Google Gemini adapter.

    Gemini does not always assign ids to function calls; missing ids are
    synthesized per response as ``call_<n>``.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        client: Any = None,
    ):
        """
        Args:
            api_key: API key. Defaults to ``GEMINI_API_KEY`` or ``GOOGLE_API_KEY``.
            base_url: API base URL. Defaults to ``GEMINI_BASE_URL`` or the public API.
            client: Pre-built ``google.genai.Client``-compatible client.

        Raises:
            ProviderConfigurationError: If no API key is available.
            ConfigError: If the ``google-genai`` package is not installed.
        """
        try:
            import httpx
            from google import genai
            from google.genai import errors, types
        except ImportError as exc:
            raise ConfigError(
                "google-genai package not installed. Install with `pip install google-genai`."
            ) from exc
        self._genai = genai
        self._types = types
        self._errors = errors
        self._httpx = httpx

        load_default_env()
        configured_url = base_url or os.getenv("GEMINI_BASE_URL")
        self.base_url = configured_url or DEFAULT_BASE_URL
        if client is None:
            api_key = api_key or first_env("GEMINI_API_KEY", "GOOGLE_API_KEY")
            if not api_key:
                raise ProviderConfigurationError(
                    provider_name="Gemini",
                    missing_config="API key",
                    env_var="GEMINI_API_KEY",
                )
            http_options = types.HttpOptions(base_url=configured_url) if configured_url else None
            client = genai.Client(api_key=api_key, http_options=http_options)
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

    def _tool_response_payload(self, message: Message) -> Dict[str, Any]:
        try:
            output = json.loads(message.content)
        except (json.JSONDecodeError, TypeError):
            output = message.content
        return output if isinstance(output, dict) else {"output": output}

    def _format_contents(self, messages: Any) -> List[Any]:
        types = self._types
        contents = []
        for message in messages:
            if message.role == Role.SYSTEM:
                continue
            if message.role == Role.TOOL:
                part = types.Part(
                    function_response=types.FunctionResponse(
                        id=message.tool_call_id,
                        name=message.tool_name,
                        response=self._tool_response_payload(message),
                    )
                )
                contents.append(types.Content(role="user", parts=[part]))
                continue

            role = "model" if message.role == Role.ASSISTANT else "user"
            parts = []
            if message.content:
                parts.append(types.Part(text=message.content))
            for call in message.tool_calls:
                parts.append(
                    types.Part(
                        function_call=types.FunctionCall(
                            id=call.id, name=call.name, args=call.arguments or {}
                        )
                    )
                )
            if parts:
                contents.append(types.Content(role=role, parts=parts))
        return contents

    def _build_config(self, request: ChatRequest) -> Any:
        types = self._types
        options: Dict[str, Any] = {}
        system = [m.content for m in request.messages if m.role == Role.SYSTEM]
        if system:
            options["system_instruction"] = "\n\n".join(system)
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["max_output_tokens"] = request.max_tokens
        if request.tools:
            options["tools"] = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=t.name,
                            description=t.description,
                            parameters_json_schema=t.input_schema,
                        )
                        for t in request.tools
                    ]
                )
            ]
        return types.GenerateContentConfig(**options)

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    def _classify(self, exc: Exception) -> ForgeError:
        if isinstance(exc, ForgeError):
            return exc
        if isinstance(exc, self._errors.APIError):
            return classify_status(getattr(exc, "code", None), str(exc))
        if isinstance(exc, (ConnectionError, TimeoutError, self._httpx.TransportError)):
            return TransportError(str(exc))
        return ProviderError(f"{type(exc).__name__}: {exc}")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        try:
            response = await self._client.aio.models.generate_content(
                model=request.model,
                contents=self._format_contents(request.messages),
                config=self._build_config(request),
            )
        except Exception as exc:
            raise self._classify(exc) from exc

        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for part in self._parts(response):
            if getattr(part, "text", None):
                text_parts.append(part.text)
            call = getattr(part, "function_call", None)
            if call is not None:
                tool_calls.append(
                    ToolCall(
                        id=call.id or f"call_{len(tool_calls)}",
                        name=call.name,
                        arguments=dict(call.args or {}),
                    )
                )

        return ChatResponse(
            output_text="".join(text_parts),
            tool_calls=tool_calls,
            usage=self._parse_usage(getattr(response, "usage_metadata", None)),
            id=getattr(response, "response_id", "") or "",
            model=getattr(response, "model_version", "") or request.model,
        )

    @staticmethod
    def _parts(response: Any) -> List[Any]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return []
        content = getattr(candidates[0], "content", None)
        return list(getattr(content, "parts", None) or [])

    @staticmethod
    def _parse_usage(usage: Any) -> Optional[UsageStats]:
        if usage is None:
            return None
        return UsageStats(
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            total_tokens=getattr(usage, "total_token_count", 0) or 0,
        )

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=request.model,
                contents=self._format_contents(request.messages),
                config=self._build_config(request),
            )
        except Exception as exc:
            raise self._classify(exc) from exc
        return self._iter_events(response)

    async def _iter_events(self, response: Any) -> AsyncIterator[StreamEvent]:
        # Gemini sends each function call whole, in a single chunk.
        calls_seen = 0
        try:
            async for chunk in response:
                for part in self._parts(chunk):
                    if getattr(part, "text", None):
                        yield TextDelta(part.text)
                    call = getattr(part, "function_call", None)
                    if call is not None:
                        call_id = call.id or f"call_{calls_seen}"
                        calls_seen += 1
                        yield ToolCallDelta(
                            call_id=call_id,
                            name=call.name,
                            arguments_delta=json.dumps(dict(call.args or {})),
                            complete=True,
                        )
                usage = self._parse_usage(getattr(chunk, "usage_metadata", None))
                if usage is not None:
                    yield UsageEvent(usage)
        except ForgeError:
            raise
        except Exception as exc:
            raise self._classify(exc) from exc
        finally:
            await aclose_resource(response)
        yield Done()


__all__ = ["GeminiAdapter"]
