"""
Error taxonomy shared by adapters, the failover router, and the tool loop.

Every failure surfaces as exactly one exception class. Adapter failures are
``ForgeError`` subclasses whose ``kind`` decides failover eligibility; tool
failures are ``ToolError`` subclasses; the loop adds ``IterationLimitExceeded``.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, FrozenSet, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .types import Message


class ForgeAIError(Exception):
    """Base exception for all forgeai errors."""

    pass


class ErrorKind(str, Enum):
    """Closed set of adapter failure kinds."""

    TRANSPORT = "transport"
    PROVIDER = "provider"
    RATE_LIMITED = "rate_limited"
    AUTH = "auth"
    INVALID_REQUEST = "invalid_request"
    UNSUPPORTED = "unsupported"


RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.TRANSPORT, ErrorKind.PROVIDER, ErrorKind.RATE_LIMITED}
)


class ForgeError(ForgeAIError):
    """
    Failure raised by an adapter (or a router acting as one).

    Subclasses pin ``kind``; callers should catch the subclass they care about
    or inspect ``kind``/``retryable`` on the base class.

    Attributes:
        kind: The failure kind.
        detail: Human-readable detail from the adapter or upstream.
    """

    kind: ErrorKind = ErrorKind.PROVIDER
    label: str = "provider error"

    def __init__(self, detail: str = ""):
        self.detail = detail
        message = f"{self.label}: {detail}" if detail else self.label
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether a failover router may move on to the next adapter."""
        return self.kind in RETRYABLE_KINDS


class TransportError(ForgeError):
    """Network or connection failure."""

    kind = ErrorKind.TRANSPORT
    label = "transport error"


class ProviderError(ForgeError):
    """Upstream returned an application-level error."""

    kind = ErrorKind.PROVIDER
    label = "provider error"


class RateLimitedError(ForgeError):
    """Upstream throttling signal."""

    kind = ErrorKind.RATE_LIMITED
    label = "rate limited"


class AuthError(ForgeError):
    """Credential rejected by upstream."""

    kind = ErrorKind.AUTH
    label = "authentication error"


class InvalidRequestError(ForgeError):
    """Caller-supplied request is malformed."""

    kind = ErrorKind.INVALID_REQUEST
    label = "invalid request"


class UnsupportedError(ForgeError):
    """Capability not offered by this adapter."""

    kind = ErrorKind.UNSUPPORTED
    label = "unsupported"


class ToolErrorKind(str, Enum):
    """Closed set of tool failure kinds."""

    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    EXECUTION_FAILED = "execution_failed"


class ToolError(ForgeAIError):
    """
    Failure raised by a tool executor.

    The tool loop fills in ``call_id`` before re-raising so callers can tell
    which requested call broke the turn.
    """

    kind: ToolErrorKind = ToolErrorKind.EXECUTION_FAILED
    label: str = "tool error"

    def __init__(
        self,
        detail: str = "",
        *,
        tool_name: Optional[str] = None,
        call_id: Optional[str] = None,
    ):
        self.detail = detail
        self.tool_name = tool_name
        self.call_id = call_id
        message = f"{self.label}: {detail}" if detail else self.label
        super().__init__(message)


class ToolNotFoundError(ToolError):
    """No tool is registered under the requested name."""

    kind = ToolErrorKind.NOT_FOUND
    label = "tool not found"

    def __init__(self, name: str, *, call_id: Optional[str] = None):
        super().__init__(name, tool_name=name, call_id=call_id)


class ToolInputError(ToolError):
    """Tool arguments failed validation."""

    kind = ToolErrorKind.INVALID_INPUT
    label = "invalid tool input"


class ToolExecutionError(ToolError):
    """Tool ran and failed."""

    kind = ToolErrorKind.EXECUTION_FAILED
    label = "tool execution failed"


class IterationLimitExceeded(ForgeAIError):
    """
    Raised when the tool loop hits its iteration ceiling without a final answer.

    Attributes:
        max_iterations: The configured ceiling.
        messages: Conversation as it stood when the loop gave up.
    """

    def __init__(self, max_iterations: int, messages: Sequence["Message"] = ()):
        self.max_iterations = max_iterations
        self.messages: Tuple["Message", ...] = tuple(messages)
        super().__init__(f"tool loop exceeded max iterations ({max_iterations})")


class ConfigError(ForgeAIError):
    """Raised when a component is constructed with invalid configuration."""

    pass


class ToolDefinitionError(ConfigError):
    """Raised when a tool is declared with an invalid definition."""

    def __init__(self, tool_name: str, param_name: str, issue: str, suggestion: str = ""):
        self.tool_name = tool_name
        self.param_name = param_name
        self.issue = issue
        self.suggestion = suggestion

        message = f"Invalid tool definition '{tool_name}' (parameter: {param_name}): {issue}"
        if suggestion:
            message += f". Suggestion: {suggestion}"
        super().__init__(message)


class ProviderConfigurationError(ConfigError):
    """Raised when an adapter is missing credentials or settings."""

    def __init__(self, provider_name: str, missing_config: str, env_var: str = ""):
        self.provider_name = provider_name
        self.missing_config = missing_config
        self.env_var = env_var

        message = f"\n{'='*60}\n"
        message += f"Provider Configuration Error: '{provider_name}'\n"
        message += f"{'='*60}\n\n"
        message += f"Missing: {missing_config}\n"
        if env_var:
            message += "\nHow to fix:\n"
            message += "  1. Set the environment variable:\n"
            message += f"     export {env_var}='your-api-key'\n"
            message += "  2. Or pass it directly:\n"
            message += f"     adapter = {provider_name}Adapter(api_key='your-api-key')\n"
        message += f"\n{'='*60}\n"

        super().__init__(message)


__all__ = [
    "ForgeAIError",
    "ErrorKind",
    "RETRYABLE_KINDS",
    "ForgeError",
    "TransportError",
    "ProviderError",
    "RateLimitedError",
    "AuthError",
    "InvalidRequestError",
    "UnsupportedError",
    "ToolErrorKind",
    "ToolError",
    "ToolNotFoundError",
    "ToolInputError",
    "ToolExecutionError",
    "IterationLimitExceeded",
    "ConfigError",
    "ToolDefinitionError",
    "ProviderConfigurationError",
]
