"""Public exports for the forgeai package."""

from .adapters.anthropic_adapter import AnthropicAdapter
from .adapters.base import AdapterInfo, BaseAdapter, CapabilityMatrix, ChatAdapter
from .adapters.gemini_adapter import GeminiAdapter
from .adapters.openai_adapter import OpenAIAdapter
from .adapters.stubs import LocalAdapter, ScriptedAdapter
from .client import (
    Client,
    chat,
    chat_stream,
    chat_with_tools,
    chat_with_tools_streaming,
    new_failover_router,
)
from .exceptions import (
    AuthError,
    ConfigError,
    ErrorKind,
    ForgeAIError,
    ForgeError,
    InvalidRequestError,
    IterationLimitExceeded,
    ProviderConfigurationError,
    ProviderError,
    RateLimitedError,
    ToolDefinitionError,
    ToolError,
    ToolExecutionError,
    ToolInputError,
    ToolNotFoundError,
    TransportError,
    UnsupportedError,
)
from .loop import ToolInvocation, ToolLoop, ToolLoopConfig, ToolLoopResult, ToolLoopStream
from .replay import RecordingAdapter, ReplayAdapter
from .router import FailoverPolicy, FailoverRouter
from .stream import Done, EventStream, StreamEvent, TextDelta, ToolCallDelta, UsageEvent
from .tools import FunctionToolExecutor, Tool, ToolExecutor, ToolParameter, ToolRegistry, tool
from .types import ChatRequest, ChatResponse, Message, Role, ToolCall, ToolDefinition
from .usage import LoopUsage, UsageStats

__version__ = "0.1.0"

__all__ = [
    # Operations
    "Client",
    "chat",
    "chat_stream",
    "chat_with_tools",
    "chat_with_tools_streaming",
    "new_failover_router",
    # Types
    "Role",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "ChatRequest",
    "ChatResponse",
    "UsageStats",
    "LoopUsage",
    # Streaming
    "StreamEvent",
    "TextDelta",
    "ToolCallDelta",
    "UsageEvent",
    "Done",
    "EventStream",
    # Adapters
    "ChatAdapter",
    "BaseAdapter",
    "AdapterInfo",
    "CapabilityMatrix",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GeminiAdapter",
    "LocalAdapter",
    "ScriptedAdapter",
    "RecordingAdapter",
    "ReplayAdapter",
    "FailoverRouter",
    "FailoverPolicy",
    # Tools
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "ToolExecutor",
    "FunctionToolExecutor",
    "tool",
    # Loop
    "ToolLoop",
    "ToolLoopConfig",
    "ToolLoopResult",
    "ToolLoopStream",
    "ToolInvocation",
    # Exceptions
    "ForgeAIError",
    "ErrorKind",
    "ForgeError",
    "TransportError",
    "ProviderError",
    "RateLimitedError",
    "AuthError",
    "InvalidRequestError",
    "UnsupportedError",
    "ToolError",
    "ToolNotFoundError",
    "ToolInputError",
    "ToolExecutionError",
    "IterationLimitExceeded",
    "ConfigError",
    "ToolDefinitionError",
    "ProviderConfigurationError",
]
