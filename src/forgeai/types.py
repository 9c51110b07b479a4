"""
Core message, request and response types for forgeai.

These primitives are provider-agnostic. Adapters translate them to and from
vendor wire formats; the router and the tool loop only ever see these.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import InvalidRequestError
from .usage import UsageStats


class Role(str, Enum):
    """Conversation roles understood by every adapter."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """
    A model's request to invoke a named tool.

    Attributes:
        id: Identifier assigned by the adapter, unique within a response.
        name: Name of the tool to invoke.
        arguments: Structured (JSON-compatible) input for the tool.
    """

    id: str
    name: str
    arguments: Any = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolCall":
        return cls(id=data["id"], name=data["name"], arguments=data.get("arguments", {}))


@dataclass(frozen=True)
class Message:
    """
    One entry in a conversation.

    Assistant messages may carry the tool calls the model requested; tool
    messages carry the ``tool_call_id`` of the call they answer.
    """

    role: Role
    content: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Iterable[ToolCall] = ()) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool_result(cls, call: ToolCall, output: Any) -> "Message":
        """
        Build the tool message answering ``call``.

        Args:
            call: The tool call being answered.
            output: Tool output. Strings are used as-is, anything else is
                serialized to JSON.

        Returns:
            A ``Role.TOOL`` message correlated to ``call.id``.
        """
        content = output if isinstance(output, str) else json.dumps(output, default=str)
        return cls(
            role=Role.TOOL,
            content=content,
            tool_call_id=call.id,
            tool_name=call.name,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_name is not None:
            data["tool_name"] = self.tool_name
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        return cls(
            role=Role(data["role"]),
            content=data.get("content", ""),
            tool_calls=tuple(ToolCall.from_dict(c) for c in data.get("tool_calls", ())),
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name"),
        )


@dataclass(frozen=True)
class ToolDefinition:
    """Tool advertised to the model: name, description and JSON input schema."""

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ToolDefinition":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=dict(data.get("input_schema", {})),
        )


@dataclass(frozen=True)
class ChatRequest:
    """
    Immutable description of one adapter call.

    Attributes:
        model: Backend model identifier. Must be non-blank when sent.
        messages: Conversation so far, in chronological order.
        temperature: Optional sampling temperature.
        max_tokens: Optional output token ceiling.
        tools: Tools the model may call. Names are unique.
        metadata: Opaque string-keyed values passed through to adapters.

    Raises:
        InvalidRequestError: If two tools share a name.
    """

    model: str
    messages: Tuple[Message, ...] = ()
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: Tuple[ToolDefinition, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "messages", tuple(self.messages))
        object.__setattr__(self, "tools", tuple(self.tools))
        seen = set()
        for definition in self.tools:
            if definition.name in seen:
                raise InvalidRequestError(f"duplicate tool name '{definition.name}'")
            seen.add(definition.name)

    def with_messages(self, messages: Iterable[Message]) -> "ChatRequest":
        """Return a copy of this request with ``messages`` replaced."""
        return replace(self, messages=tuple(messages))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "tools": [t.to_dict() for t in self.tools],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatRequest":
        return cls(
            model=data["model"],
            messages=tuple(Message.from_dict(m) for m in data.get("messages", ())),
            temperature=data.get("temperature"),
            max_tokens=data.get("max_tokens"),
            tools=tuple(ToolDefinition.from_dict(t) for t in data.get("tools", ())),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ChatResponse:
    """
    Result of one adapter call.

    A response with tool calls is non-terminal inside a tool loop.
    """

    output_text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Optional[UsageStats] = None
    id: str = ""
    model: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_message(self) -> Message:
        """Assistant message recording this response in a conversation."""
        return Message.assistant(self.output_text, self.tool_calls)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_text": self.output_text,
            "tool_calls": [call.to_dict() for call in self.tool_calls],
            "usage": self.usage.to_dict() if self.usage else None,
            "id": self.id,
            "model": self.model,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatResponse":
        usage = data.get("usage")
        return cls(
            output_text=data.get("output_text", ""),
            tool_calls=[ToolCall.from_dict(c) for c in data.get("tool_calls", ())],
            usage=UsageStats.from_dict(usage) if usage else None,
            id=data.get("id", ""),
            model=data.get("model", ""),
            metadata=dict(data.get("metadata") or {}),
        )


__all__ = [
    "Role",
    "ToolCall",
    "Message",
    "ToolDefinition",
    "ChatRequest",
    "ChatResponse",
]
