"""
Configuration options for the tool loop.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

# Hook type definitions
HookCallable = Callable[..., None]
Hooks = Dict[str, HookCallable]

DEFAULT_MAX_ITERATIONS = 8


@dataclass
class ToolLoopConfig:
    """
    Configuration options for a tool-calling loop.

    Attributes:
        max_iterations: Maximum adapter calls per run. A run that still has
               pending tool calls after this many calls fails with
               IterationLimitExceeded. Must be at least 1. Default: 8.
        temperature: Sampling temperature forwarded on every request. Default: None (backend default).
        max_tokens: Output token ceiling forwarded on every request. Default: None.
        metadata: Opaque values forwarded in ChatRequest.metadata. Default: empty.
        parallel_tool_execution: Run the tool calls of one turn concurrently.
               Results are appended in the order the model requested them
               regardless of completion order. Default: False.
        tool_timeout_seconds: Maximum execution time for each tool call. None = no timeout. Default: None.
        hooks: Optional dict of lifecycle hooks for observability. Default: None.
               Available hooks:
               - 'on_iteration_start': Called at the start of each iteration with (iteration, messages)
               - 'on_llm_start': Called before each adapter call with (request,)
               - 'on_llm_end': Called after each adapter call with (response,)
               - 'on_tool_start': Called before tool execution with (call,)
               - 'on_tool_end': Called after tool execution with (call, output, duration)
               - 'on_tool_error': Called on tool failure with (call, error)
               - 'on_loop_end': Called once the loop reaches a final answer with (result,)
               - 'on_error': Called when the loop fails with (error, context)
               A hook that raises is logged and otherwise ignored.
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    parallel_tool_execution: bool = False
    tool_timeout_seconds: Optional[float] = None
    hooks: Optional[Hooks] = None


__all__ = ["ToolLoopConfig", "HookCallable", "Hooks", "DEFAULT_MAX_ITERATIONS"]
