"""Adapter implementations for various chat backends."""

from .anthropic_adapter import AnthropicAdapter
from .base import (
    AdapterInfo,
    BaseAdapter,
    CapabilityMatrix,
    ChatAdapter,
    classify_status,
    validate_request,
)
from .gemini_adapter import GeminiAdapter
from .openai_adapter import OpenAIAdapter
from .stubs import LocalAdapter, ScriptedAdapter

__all__ = [
    "ChatAdapter",
    "BaseAdapter",
    "AdapterInfo",
    "CapabilityMatrix",
    "validate_request",
    "classify_status",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "LocalAdapter",
    "ScriptedAdapter",
]
